"""Diagnostics for the agent loop, rendered with Rich on stderr.

stdout is reserved for the final status line, so everything here goes to
the module-level console.
"""

from rich.console import Console
from rich.rule import Rule
from rich.text import Text

_console = Console(stderr=True)

OK = "\u2713"
FAIL = "\u2717"
RUN = "\u25b6"
WARN = "\u26a0"


def init(*, color: bool | None = None) -> None:
    """Rebuild the console: True forces color, False disables it, None detects."""
    global _console
    if color is None:
        _console = Console(stderr=True)
    elif color:
        _console = Console(stderr=True, force_terminal=True)
    else:
        _console = Console(stderr=True, no_color=True)


def _say(*segments, indent: str = "  ") -> None:
    """Print one line built from (text, style) pairs or plain strings."""
    line = Text(indent)
    for seg in segments:
        if isinstance(seg, str):
            line.append(seg)
        else:
            line.append(*seg)
    _console.print(line)


def _dim_block(body: str, indent: str = "    ") -> None:
    for row in body.splitlines():
        _say((row, "dim"), indent=indent)


# Turns


def turn_header(n: int, max_n: int, token_est: int) -> None:
    _console.print(Rule(f"Turn {n}/{max_n} (~{token_est} tokens)", style="cyan"))


def llm_timing(elapsed: float, provider: str) -> None:
    _say((f"LLM responded in {elapsed:.1f}s  provider={provider}", "green"))


def assistant_text(text: str) -> None:
    _say(("[assistant] ", "blue"), text)


def completion(turns: int, status: str) -> None:
    if status == "done":
        _say((f"{OK} Agent finished: {turns} turns", "bold green"))
    else:
        _say((f"Agent finished: {turns} turns, status={status}", "bold red"))


def completion_ignored(count: int) -> None:
    _say(
        (
            f"{WARN} done signal mixed with {count - 1} other operation(s); continuing",
            "yellow",
        )
    )


# Operations


def operation(kind: str, detail: str) -> None:
    _say((f"{RUN} {kind}", "bold magenta"))
    _dim_block(detail)


def operation_result(kind: str, elapsed: float, preview: str) -> None:
    _say((f"{OK} {kind}  {elapsed:.1f}s", "green"))
    if preview:
        _dim_block(preview.rstrip())


def operation_error(kind: str, msg: str) -> None:
    _say((f"{FAIL} {kind}", "bold red"), (f"  {msg}", "red"))


# Status


def model_info(msg: str) -> None:
    _say((msg, "dim"))


info = model_info


def context_stats(label: str, tokens: int) -> None:
    _say((f"{label}: ~{tokens} tokens", "dim"))


def warning(msg: str) -> None:
    _say((f"{WARN} Warning: {msg}", "yellow"))


def error(msg: str) -> None:
    _say(("Error: ", "bold red"), (msg, "red"), indent="")
