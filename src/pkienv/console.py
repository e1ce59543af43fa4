"""Terminal prompting for the messaging session.

Choices are single letters, accepted in either case; anything else is answered with a request to select again.
"""
# Copyright (c) 2025-present Tech. TTGames
# SPDX-License-Identifier: EPL-2.0
import typing

from pkienv.cipher import Mode
from pkienv.session import SetupAction


class HelpData(typing.NamedTuple):
    description: str
    choices: dict[str, str] | None = None
    allow_empty: bool = False


help_dict: dict[str, HelpData] = {
    "setup":
        HelpData(
            description="What would you like to do?",
            choices={
                SetupAction.GENERATE.value: "Create a personal credential file",
                SetupAction.IMPORT.value: "Input a remote user credential file",
                SetupAction.PROCEED.value: "Start sending and receiving messages",
            },
        ),
    "mode":
        HelpData(
            description="How would you like to encrypt your message?",
            choices={
                Mode.CONFIDENTIALITY.value: "Confidentiality",
                Mode.AUTHENTICATION.value: "Authentication",
                Mode.BOTH.value: "Both",
                Mode.QUIT.value: "Quit",
            },
        ),
    "own_file":
        HelpData("Input the name for your credential file"),
    "peer_file":
        HelpData("Input the name of the credential file"),
    "message":
        HelpData("Message", allow_empty=True),
}


class TerminalConsole:
    """Interactive prompts on the terminal.

    Attributes:
        prompt: Reads one line of user input, `input` by default.
        prntr: Writes one line of output, `print` by default.
    """

    def __init__(self, prompt: typing.Callable[[str], str] = input, prntr: typing.Callable = print) -> None:
        self.prompt = prompt
        self.prntr = prntr

    def choice(self, arg: str) -> str:
        """Offer the choices of `arg` until one of them is picked, and return its letter."""
        helper_data = help_dict[arg]
        self.prntr(helper_data.description)
        for letter, label in helper_data.choices.items():
            self.prntr(f"({letter}) {label}")
        while True:
            ch = self.prompt(f"{arg}: ").strip().upper()
            if ch in helper_data.choices:
                return ch
            self.prntr("Invalid input! Please select again.")

    def text(self, arg: str) -> str:
        helper_data = help_dict[arg]
        while True:
            ch = self.prompt(f"{helper_data.description}: ")
            if ch or helper_data.allow_empty:
                return ch
            self.prntr("Please provide a value.")

    def choose_setup_action(self) -> SetupAction:
        return SetupAction(self.choice("setup"))

    def ask_filename(self, own: bool) -> str:
        return self.text("own_file" if own else "peer_file").strip()

    def choose_mode(self) -> Mode:
        """Ask for the mode of the next outgoing message. End of input counts as quitting."""
        try:
            return Mode(self.choice("mode"))
        except EOFError:
            return Mode.QUIT

    def read_message(self) -> str:
        return self.text("message")

    def show(self, text: str) -> None:
        self.prntr(text)
