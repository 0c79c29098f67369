"""Interactive terminal prompts: approvals, free-text comments, menus.

Every prompt has a default that applies when the user cancels (Ctrl-C,
Ctrl-D) or when stdin is not a terminal, so a piped invocation never
approves anything by accident.
"""

import sys

from . import fmt


def _interactive() -> bool:
    return sys.stdin is not None and sys.stdin.isatty()


def _prompt(message: str) -> str | None:
    """Read one line, or None when cancelled."""
    from prompt_toolkit import PromptSession
    from prompt_toolkit.formatted_text import FormattedText

    session = PromptSession()
    try:
        return session.prompt(FormattedText([("bold fg:ansigreen", message)]))
    except (EOFError, KeyboardInterrupt):
        print(file=sys.stderr)  # newline after ^D / ^C
        return None


def confirm(message: str, default: bool = False) -> bool:
    if not _interactive():
        return default
    suffix = " [Y/n] " if default else " [y/N] "
    answer = _prompt(message + suffix)
    if answer is None:
        return default
    answer = answer.strip().lower()
    if not answer:
        return default
    return answer in ("y", "yes")


def ask_text(message: str, default: str = "") -> str:
    if not _interactive():
        return default
    answer = _prompt(f"{message}: ")
    return default if answer is None else answer


def select(title: str, options: list[str]) -> int | None:
    """Numbered menu. Returns the chosen index, or None if cancelled."""
    if not options or not _interactive():
        return None
    fmt.info(title)
    for i, label in enumerate(options):
        fmt.session_menu_item(i, label)
    while True:
        answer = _prompt("Select an option (empty to cancel): ")
        if answer is None or not answer.strip():
            return None
        try:
            index = int(answer.strip())
        except ValueError:
            fmt.warning(f"not a number: {answer.strip()}")
            continue
        if 0 <= index < len(options):
            return index
        fmt.warning(f"choose a number between 0 and {len(options) - 1}")


class TerminalApprover:
    """Human-in-the-loop gate used by the agent loop."""

    def confirm(self, command: str) -> bool:
        return confirm(f"\nRun command: {command}")

    def comment(self) -> str:
        return ask_text("Comment on the provided code")
