"""Key state of one party in the PKI Environment.

A `KeyMaterial` holds the party's own primes, modulus, totient and exponent pair, plus the credential of the peer
once it has been imported. It is created once per session and only the peer credential ever changes afterwards.

Typical usage example:

    keys = KeyMaterial.generate(2048)
    keys.import_peer(p, q, e)
    keys.peer.mod
"""
# Copyright (c) 2025-present Tech. TTGames
# SPDX-License-Identifier: EPL-2.0
import logging
import typing

from pkienv import keygen

DEFAULT_BITS = 2048

log = logging.getLogger(__name__)


class Credential(typing.NamedTuple):
    """The exportable part of a key pair: both primes and the public exponent.

    Anyone holding it can rebuild the modulus, so it is treated as a capability token.
    """
    p: int
    q: int
    pub_exp: int

    @property
    def mod(self) -> int:
        return self.p * self.q


class KeyMaterial:
    """Own RSA key pair plus an optional imported peer credential.

    Attributes:
        p: Private prime 1.
        q: Private prime 2.
        mod: The modulus, `p * q`.
        phi: Euler's totient of the modulus.
        pub_exp: The public exponent.
        priv_exp: The private exponent, inverse of `pub_exp` modulo `phi`.
        peer: The imported peer credential, None until one is imported.
    """

    def __init__(self, p: int, q: int, pub_exp: int) -> None:
        """Derive the full key pair from known primes and public exponent.

        Args:
            p: Private prime 1.
            q: Private prime 2.
            pub_exp: The public exponent. Must be invertible modulo the totient.

        Raises:
            ValueError: If `pub_exp` is not coprime to the totient or out of range.
        """
        self.p = p
        self.q = q
        self.mod = p * q
        self.phi = (p - 1) * (q - 1)
        if not 1 < pub_exp < self.phi:
            raise ValueError("Public exponent must be in range (1, phi).")
        self.pub_exp = pub_exp
        self.priv_exp = pow(pub_exp, -1, self.phi)
        self.peer: Credential | None = None

    @classmethod
    def generate(cls, bits: int = DEFAULT_BITS) -> "KeyMaterial":
        """Generate a fresh key pair.

        Args:
            bits: Bit length of each of the two primes. The public exponent starts from a prime of half that length.

        Returns:
            New key material without a peer credential.
        """
        log.info("Generating %d-bit primes.", bits)
        p, q = keygen.generate_primes(bits)
        phi = (p - 1) * (q - 1)
        e = keygen.find_public_exponent(phi, bits // 2)
        log.debug("Key pair ready, modulus has %d bits.", (p * q).bit_length())
        return cls(p, q, e)

    def credential(self) -> Credential:
        """The own credential to hand over to the peer."""
        return Credential(self.p, self.q, self.pub_exp)

    def import_peer(self, p: int, q: int, pub_exp: int) -> Credential:
        """Accept a peer credential.

        Nothing is validated: a credential that made it this far is trusted.
        """
        self.peer = Credential(p, q, pub_exp)
        log.info("Imported peer credential with a %d-bit modulus.", self.peer.mod.bit_length())
        return self.peer

    def __repr__(self) -> str:
        peer = "none" if self.peer is None else f"{self.peer.mod.bit_length()} bits"
        return f"<KeyMaterial mod={self.mod.bit_length()} bits peer={peer}>"
