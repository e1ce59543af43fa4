"""The Command Line Interface for the PKI Environment, including Interactive elements.

A hybrid CLI/ICLI: anything missing from the command line is asked for interactively, unless non-interactive mode is
on, in which case defaults are used.

Typical usage example:

    pkienv listen --port 5000
    pkienv connect --host 192.168.56.1 --port 5000
    OR
    python -m pkienv
"""
# Copyright (c) 2025-present Tech. TTGames
# SPDX-License-Identifier: EPL-2.0
import argparse
import logging
import sys
import typing

import pkienv
from pkienv import transport
from pkienv.channel import Channel
from pkienv.console import TerminalConsole
from pkienv.keys import DEFAULT_BITS
from pkienv.keys import KeyMaterial
from pkienv.session import MessageSession
from pkienv.session import Role


class HelpData(typing.NamedTuple):
    description: str
    format: typing.Type = str
    choices: list[str] | None = None
    default: typing.Any = None
    advanced: bool = False


help_dict: dict[str, HelpData] = {
    "subcommand":
        HelpData(
            description="The side of the connection to take.",
            choices=["listen", "connect"],
        ),
    "listen":
        HelpData("Wait for the peer to connect. The peer sends first."),
    "connect":
        HelpData("Connect to a listening peer and send first."),
    "host":
        HelpData(description="Address to listen on or connect to."),
    "port":
        HelpData(
            description="TCP port of the listening side.",
            format=int,
            default=transport.DEFAULT_PORT,
        ),
    "bits":
        HelpData(
            description="Bit length of each of the two secret primes.",
            format=int,
            advanced=True,
            default=DEFAULT_BITS,
        ),
}

needs = {
    "listen": ("port", "bits"),
    "connect": ("port", "bits"),
}

hosts = {
    "listen": transport.DEFAULT_LISTEN_HOST,
    "connect": transport.DEFAULT_CONNECT_HOST,
}

common = argparse.ArgumentParser(add_help=False)
common.add_argument("--host", "-H", type=help_dict["host"].format, help=help_dict["host"].description)
common.add_argument("--port", "-p", type=help_dict["port"].format, help=help_dict["port"].description)
common.add_argument("--bits", "-b", type=help_dict["bits"].format, help=help_dict["bits"].description)
corep = argparse.ArgumentParser(prog="pkienv")
corep.add_argument("--version", "-v", action="version", version=f"%(prog)s {pkienv.__version__}")
corep.add_argument("--non-interactive", "-n", action="store_true", help="Enable non-interactive mode")
corep.add_argument("--advanced", "-a", action="store_true", help="Enable advanced mode, for interactive mode")
corep.add_argument("--log", "-l", default="WARNING", help="Logging level (DEBUG, INFO, WARNING, ...)")
corep.set_defaults(host=None, port=None, bits=None)
commands = corep.add_subparsers(dest="subcommand", title="Subcommands")
commands.add_parser("listen", parents=[common], help=help_dict["listen"].description)
commands.add_parser("connect", parents=[common], help=help_dict["connect"].description)


def checkmodes(arg: str, mode: tuple[bool, bool]):
    helper_data = help_dict[arg]
    if (mode[0] or (helper_data.advanced and not mode[1])) and helper_data.default is not None:
        return helper_data.default
    if mode[0]:
        raise IOError(f"Argument {arg} is missing and non-interactive mode is active.")
    return helper_data


def choice_handler(arg: str, mode: tuple[bool, bool], prntr: typing.Callable = print):
    helper_data = checkmodes(arg, mode)
    if not isinstance(helper_data, HelpData):
        return helper_data
    prntr(f"Please specify the {arg}!")
    prntr("Description: " + helper_data.description)
    for choice in helper_data.choices:
        if help_dict.get(choice, None):
            prntr(f"{choice} - {help_dict[choice].description}")
        else:
            prntr(choice)
    while True:
        ch = input(f"{arg}: ")
        if ch in helper_data.choices:
            return ch
        prntr("Please select an option from the list.")


def input_handler(arg: str, mode: tuple[bool, bool], prntr: typing.Callable = print):
    helper_data = checkmodes(arg, mode)
    if not isinstance(helper_data, HelpData):
        return helper_data
    prntr(f"Please specify the {arg}!")
    prntr("Description: " + helper_data.description)
    if helper_data.default is not None:
        prntr(f"Default value: {helper_data.default}")
        prntr("To accept default just click enter. Otherwise specify value.")
    cls = helper_data.format
    while True:
        ch = input(f"{arg}: ")
        if not ch and helper_data.default is not None:
            return helper_data.default
        if ch == "":
            prntr("Please provide a value.")
            continue
        try:
            return cls(ch)
        except ValueError:
            prntr(f"We could not convert your value to {cls.__name__}.")


def main(argv: list[str] | None = None) -> None:
    """Core Hybrid CLI/ICLI, ending in a messaging session."""
    args = corep.parse_args(argv)
    pstatus = (args.non_interactive, args.advanced)
    logging.basicConfig(level=getattr(logging, args.log.upper(), logging.WARNING),
                        format="%(asctime)s %(levelname)s %(name)s: %(message)s")

    print("Welcome to the PKI Environment!\n")
    if not args.subcommand:
        args.subcommand = choice_handler("subcommand", pstatus)
    if args.host is None:
        args.host = hosts[args.subcommand]
    for reqs in needs[args.subcommand]:
        if getattr(args, reqs, None) is None:
            setattr(args, reqs, input_handler(reqs, pstatus))

    print(f"Generating {args.bits}-bit primes, this may take a moment...")
    keys = KeyMaterial.generate(args.bits)
    opener, role = {
        "listen": (transport.listen, Role.ACCEPTOR),
        "connect": (transport.connect, Role.INITIATOR),
    }[args.subcommand]
    try:
        with opener(args.host, args.port) as sock:
            print("Connected\n")
            with MessageSession(keys, Channel.from_socket(sock), role, TerminalConsole()) as session:
                session.run()
    except (KeyboardInterrupt, EOFError):
        print("\nInterrupted.")
    except OSError as exc:
        print(f"Failed to establish the connection: {exc}")
        sys.exit(1)
    print("Goodbye!")


if __name__ == "__main__":
    main()
