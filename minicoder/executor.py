"""Run parsed operations against the local shell and filesystem."""

import subprocess
import time
from pathlib import Path

from . import fmt
from .ops import Edit, Operation
from .report import ReportCollector

SHELL = "bash"
MAX_PREVIEW = 500


def _exit_reason(returncode: int) -> str:
    if returncode < 0:
        return f"killed by signal {-returncode}"
    return f"exit status {returncode}"


def _run_shell(command: str) -> tuple[str, str | None]:
    """Run a shell string, blocking until it exits.

    stdout and stderr share one pipe so the transcript keeps their
    interleaving. A command the OS cannot accept (embedded NUL, lone
    surrogate) is reported like a launch failure. Returns (transcript
    fragment, error or None).
    """
    try:
        proc = subprocess.run(
            [SHELL, "-c", command],
            stdout=subprocess.PIPE,
            stderr=subprocess.STDOUT,
            stdin=subprocess.DEVNULL,
            check=False,
        )
    except (OSError, ValueError) as e:
        error = str(e)
        return f"$ {command}\n\n(error: {error})\n", error

    output = proc.stdout.decode("utf-8", errors="replace")
    if proc.returncode != 0:
        error = _exit_reason(proc.returncode)
        return f"$ {command}\n{output}\n(error: {error})\n", error
    return f"$ {command}\n{output}\n", None


def _write_edit(edit: Edit) -> tuple[str, str | None]:
    """Replace the whole file with the edit content. Parent dirs must exist."""
    try:
        Path(edit.path).write_bytes(edit.content.encode("utf-8"))
    except (OSError, ValueError) as e:
        error = str(e)
        return f"edited {edit.path}\n(error: {error})\n", error
    return f"edited {edit.path}\n", None


def run_operation(op: Operation, verbose: bool = False) -> tuple[str, dict]:
    """Execute a single operation and return (transcript fragment, metadata).

    metadata has stable keys: kind, detail, elapsed, succeeded, error.
    Both shell and edit cases run when an element carries both.
    """
    parts: list[str] = []
    errors: list[str] = []
    detail = None

    t0 = time.monotonic()
    if op.shell:
        detail = op.shell
        if verbose:
            fmt.operation("shell", op.shell)
        text, error = _run_shell(op.shell)
        parts.append(text)
        if error:
            errors.append(error)
    if op.edit is not None:
        detail = op.edit.path if detail is None else f"{detail}; {op.edit.path}"
        if verbose:
            fmt.operation("edit", f"{op.edit.path} ({len(op.edit.content)} chars)")
        text, error = _write_edit(op.edit)
        parts.append(text)
        if error:
            errors.append(error)
    elapsed = time.monotonic() - t0

    fragment = "".join(parts)
    error = "; ".join(errors) or None
    if verbose and parts:
        if error:
            fmt.operation_error(op.kind, error)
        else:
            fmt.operation_result(op.kind, elapsed, fragment[:MAX_PREVIEW])

    return fragment, {
        "kind": op.kind,
        "detail": detail,
        "elapsed": elapsed,
        "succeeded": error is None,
        "error": error,
    }


def execute_operations(
    ops: list[Operation],
    *,
    verbose: bool = False,
    report: ReportCollector | None = None,
    turn: int = 0,
) -> str:
    """Run operations strictly in order and return the combined transcript.

    A failing operation is annotated in the transcript and never stops the
    rest of the batch. Done and empty operations contribute nothing.
    """
    transcript: list[str] = []
    for op in ops:
        if op.kind in ("done", "empty"):
            continue
        fragment, meta = run_operation(op, verbose)
        transcript.append(fragment)
        if report:
            report.record_operation(
                turn,
                meta["kind"],
                meta["detail"],
                meta["succeeded"],
                meta["elapsed"],
                len(fragment),
                error=meta["error"],
            )
    return "".join(transcript)
