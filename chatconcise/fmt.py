"""ANSI-formatted stderr output using Rich."""

from rich.console import Console
from rich.markup import escape
from rich.rule import Rule
from rich.text import Text

_console = Console(stderr=True)


def init(*, color: bool = False, no_color: bool = False) -> None:
    """Reconfigure the module-level console from CLI flags.

    Call once at startup, before any output.
    """
    global _console
    kwargs: dict = {"stderr": True}
    if color:
        kwargs["force_terminal"] = True
        kwargs["no_color"] = False
    if no_color:
        kwargs["no_color"] = True
    _console = Console(**kwargs)


def width() -> int:
    return _console.width


# -- Loop structure ----------------------------------------------------------


def turn_header(n: int, max_n: int | None, token_est: int) -> None:
    bound = f"/{max_n}" if max_n is not None else ""
    title = f"Iteration {n}{bound} (~{token_est} tokens)"
    _console.print(Rule(title, style="cyan"))


def llm_spinner(label: str = "Waiting for model"):
    """Return a Rich Status context manager that spins on stderr."""
    return _console.status(f"  {label}", spinner="dots")


def completion(iterations: int, status: str) -> None:
    if status == "ok":
        _console.print(
            Text(f"  \u2713 Task completed! ({iterations} iterations)", style="bold green")
        )
    else:
        _console.print(
            Text(
                f"  Agent stopped: {iterations} iterations, reason={status}",
                style="bold red",
            )
        )


# -- Commands ----------------------------------------------------------------


def proposed_command(command: str) -> None:
    header = Text()
    header.append("  \u25b6 ", style="bold magenta")
    header.append("Proposed command: ", style="bold magenta")
    header.append(command)
    _console.print(header)


def command_output(text: str) -> None:
    for line in text.splitlines():
        _console.print(Text(f"    {line}", style="dim"))


def command_rejected(comment: str) -> None:
    line = Text()
    line.append("  \u2717 Command rejected", style="bold red")
    if comment:
        line.append(f"  {comment}", style="red")
    _console.print(line)


def spawn_failure(msg: str) -> None:
    header = Text()
    header.append("  \u2717 Failed to execute command", style="bold red")
    header.append(f"  {msg}", style="red")
    _console.print(header)


# -- Assistant text ----------------------------------------------------------


def assistant_text(text: str) -> None:
    line = Text()
    line.append("  [assistant] ", style="blue")
    line.append(text)
    _console.print(line)


# -- Diagnostics -------------------------------------------------------------


def model_info(msg: str) -> None:
    _console.print(Text(f"  {msg}", style="dim"))


def info(msg: str) -> None:
    _console.print(Text(f"  {msg}", style="dim"))


def context_stats(label: str, tokens: int) -> None:
    _console.print(Text(f"  {label}: ~{tokens} tokens", style="dim"))


def warning(msg: str) -> None:
    line = Text()
    line.append("  \u26a0 Warning: ", style="yellow")
    line.append(msg, style="yellow")
    _console.print(line)


def error(msg: str) -> None:
    line = Text()
    line.append("Error: ", style="bold red")
    line.append(msg, style="red")
    _console.print(line)


def session_menu_item(index: int, label: str) -> None:
    _console.print(f"  [bold cyan]{index:>3}[/bold cyan]  {escape(label)}")
