"""Terminal output for appctl commands."""

from typing import IO, Optional

import typer


def green(message: str) -> str:
    return typer.style(message, fg=typer.colors.GREEN)


def red(message: str) -> str:
    return typer.style(message, fg=typer.colors.RED)


def bold(message: str) -> str:
    return typer.style(message, bold=True)


class TerminalUI:
    """Writes user-facing command output.

    The stream is looked up on every write so that output captured by a test
    runner after construction still lands in the right place.
    """

    def __init__(self, stream: Optional[IO[str]] = None):
        self.stream = stream

    def say(self, message: str) -> None:
        typer.echo(message, nl=False, file=self.stream)

    def say_line(self, message: str) -> None:
        typer.echo(message, file=self.stream)

    def incorrect_usage(self, message: str = "") -> None:
        if message:
            self.say_line(f"Incorrect Usage: {message}")
        else:
            self.say_line("Incorrect Usage")

    def dot(self) -> None:
        self.say(".")

    def new_line(self) -> None:
        self.say("\n")
