"""Number theory behind the key pairs, mainly focusing on the generation of random large primes.

Python integers already give us arbitrary precision, modular exponentiation through `pow(b, e, m)` and modular
inverses through `pow(e, -1, m)`. What is left is finding probable primes and a public exponent that is coprime to the
totient, which this module takes care of.

Typical usage example:

    p, q = generate_primes(2048)
    phi = (p - 1) * (q - 1)
    e = find_public_exponent(phi, 1024)
"""
# Copyright (c) 2025-present Tech. TTGames
# SPDX-License-Identifier: EPL-2.0
import logging
import math
import secrets

log = logging.getLogger(__name__)

_SMALL_PRIMES: list[int] = []
_SMALL_PRIMES_CAP: int = 0
_MINIMUM_PRIME_SEPARATION: int = 100
MINIMUM_BITS: int = 32


def _sieve(n: int = 10000) -> list[int]:
    """Implements the Sieve of Eratosthenes.

    Uses the textbook Sieve of Eratosthenes, only tracking odd candidates and sieving until root.

    Args:
        n: The number up to which to generate primes. Defaults to 10000. Must be >= 0.

    Returns:
        A list of primes up to `n`.
    """
    if n < 2:
        return []
    i_size = (n - 1) // 2
    candidate: list[bool] = [True] * i_size
    for i in range(int(n**0.5) // 2):
        if candidate[i]:
            r = 2 * i + 3
            for j in range((r * r - 3) // 2, i_size, r):
                candidate[j] = False
    return [2] + [(no * 2 + 3) for no, ele in enumerate(candidate) if ele]


def get_pre_primes(n: int = 10000, change: bool = False) -> list[int]:
    """Get the small primes, sieving them if the cache does not cover `n`.

    Args:
        n: The number up to which to generate primes. Defaults to 10000. Must be >= 0.
        change: Whether to force a recomputation of primes. Defaults to False.

    Returns:
        List of primes in ascending order, covering at least up to `n`.
    """
    if n < 0:
        raise ValueError("n must be >= 0")
    global _SMALL_PRIMES
    global _SMALL_PRIMES_CAP
    if n > _SMALL_PRIMES_CAP or change or not _SMALL_PRIMES:
        _SMALL_PRIMES = _sieve(n)
        _SMALL_PRIMES_CAP = n
    return _SMALL_PRIMES


def _trial_division(no: int, n: int = 10000) -> bool:
    """Check `no` against the known small primes before running Miller-Rabin.

    Args:
         no: The number to check. Must be a non-negative integer.
         n: The bound passed on to `get_pre_primes()`.

    Returns:
        False if `no` cannot be prime, True otherwise.
    """
    if no < 2:
        return False
    for prime in get_pre_primes(n):
        if prime**2 > no:
            return True
        if no % prime == 0:
            return False
    return True


def _miller_rabin(w: int, iters: int) -> bool:
    """Perform the Miller-Rabin primality test with random bases.

    Args:
        w: Integer to be tested.
        iters: Number of rounds to perform.

    Returns:
        True if `w` is probably prime, False otherwise.
    """
    if w <= 3:
        return w in (2, 3)
    if w % 2 == 0:
        return False
    tw = w - 1
    a = (tw & -tw).bit_length() - 1
    m = tw >> a
    for _ in range(iters):
        b = secrets.randbelow(w - 3) + 2
        z = pow(b, m, w)
        if z in (1, w - 1):
            continue
        for _ in range(1, a):
            z = pow(z, 2, w)
            if z == w - 1:
                break
            if z == 1:
                return False
        else:
            return False
    return True


def check_prime(candidate: int, iters: int | None = None, n: int = 10000) -> bool:
    """Trial division against small primes, followed by a Miller-Rabin test.

    Args:
        candidate: The candidate prime to test.
        iters: Number of Miller-Rabin rounds. Scales with the candidate size when not provided.
        n: Bound on the small primes used for trial division.

    Returns:
        True if `candidate` is probably prime, False otherwise.
    """
    if candidate < 2:
        return False
    if not _trial_division(candidate, n):
        return False
    if iters is None:
        if candidate.bit_length() <= 512:
            iters = 40
        elif candidate.bit_length() <= 1024:
            iters = 56
        elif candidate.bit_length() <= 2048:
            iters = 64
        else:
            iters = 74
    return _miller_rabin(candidate, iters)


def generate_probable_prime(size: int, other: int | None = None) -> int:
    """Generate a probable prime of exactly `size` bits.

    The two top bits of every candidate are set, so the product of two such primes has exactly `2 * size` bits.

    Args:
        size: The size of the prime in bits.
        other: The first prime of the pair if this is the second generation. Candidates too close to it are skipped.

    Returns:
        A probable prime number.

    Raises:
        RuntimeError: If generation loops way beyond a reasonable amount of candidates.
    """
    rep_cap = size * 10
    separation = 1 << max(size - _MINIMUM_PRIME_SEPARATION, 0)
    msk = (1 << size - 1) | (1 << size - 2) | 1
    for _ in range(rep_cap):
        candidate = secrets.randbits(size) | msk
        if other is not None and abs(other - candidate) <= separation:
            continue
        if check_prime(candidate):
            return candidate
    raise RuntimeError(f"Ran an improbable {rep_cap} loops with no prime found. Check system random number generator.")


def generate_primes(size: int) -> tuple[int, int]:
    """Generate two distinct independent probable primes of `size` bits each.

    Args:
        size: Bit length of each prime.

    Returns:
        The prime pair (p, q).

    Raises:
        ValueError: If `size` is too small to carry a message and a public exponent.
    """
    if size < MINIMUM_BITS:
        raise ValueError(f"Size must be at least {MINIMUM_BITS} bits.")
    p = generate_probable_prime(size)
    q = generate_probable_prime(size, p)
    while p == q:  # (Un)Likely story.
        q = generate_probable_prime(size, p)
    return p, q


def find_public_exponent(phi: int, size: int, attempts: int | None = None) -> int:
    """Find a public exponent coprime to `phi`.

    Starts from a random probable prime of `size` bits and walks upward through odd candidates until one is coprime
    to the totient. As `phi` is even, even candidates can never qualify and are not tested.

    Args:
        phi: The totient of the modulus.
        size: Bit length of the starting candidate.
        attempts: Upper bound on tested candidates. Defaults to `size * 10`.

    Returns:
        An exponent `e` with `1 < e < phi` and `gcd(e, phi) == 1`.

    Raises:
        RuntimeError: If no candidate qualifies within the bound.
    """
    if attempts is None:
        attempts = size * 10
    e = generate_probable_prime(size)
    for _ in range(attempts):
        if e >= phi:
            break
        if math.gcd(e, phi) == 1:
            return e
        log.debug("Public exponent candidate shares a factor with phi, moving on.")
        e += 2
    raise RuntimeError(f"No public exponent coprime to phi found within {attempts} candidates.")
