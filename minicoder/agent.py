import argparse
import sys
import time
from dataclasses import dataclass
from importlib import metadata
from pathlib import Path

import tiktoken

from . import fmt
from .config import Settings, generate_config, resolve_settings
from .conversation import Conversation, Message
from .executor import execute_operations
from .ops import SYSTEM_PROMPT, is_completion, parse_operations
from .providers import PROVIDERS, Provider, create_provider
from .report import (
    AgentError,
    ConfigError,
    MissingCredentialError,
    ParseError,
    ProviderError,
    ReportCollector,
)

DEFAULT_MAX_TURNS = 20
MAX_REPLY_LOG = 1000

_encoder = None


def _get_encoder():
    global _encoder
    if _encoder is None:
        _encoder = tiktoken.get_encoding("cl100k_base")
    return _encoder


def estimate_tokens(messages) -> int:
    """Count tokens across all messages using tiktoken."""
    encoder = _get_encoder()
    total = 0
    for m in messages:
        total += len(encoder.encode(m.content, disallowed_special=()))
    # Per-message overhead (role, separators): ~4 tokens each
    total += 4 * len(messages)
    return total


@dataclass
class LoopResult:
    """Terminal state of one agent run.

    status is "done" (the model sent a lone done operation), "aborted"
    (provider or parse failure, reason says which) or "exhausted" (turn
    ceiling reached without completion).
    """

    status: str
    turns: int
    reason: str | None = None


def build_conversation(prompt: str) -> Conversation:
    """Return the initial conversation: protocol instructions then the task."""
    return Conversation(
        [Message("system", SYSTEM_PROMPT), Message("user", prompt)]
    )


def run_agent_loop(
    conversation: Conversation,
    provider: Provider,
    *,
    model: str,
    max_turns: int = DEFAULT_MAX_TURNS,
    verbose: bool = False,
    report: ReportCollector | None = None,
) -> LoopResult:
    """Run the send/parse/execute cycle until completion or max turns.

    Appends to `conversation` in place: the raw assistant reply, then the
    execution transcript as a user message, once per executed turn. A
    provider or parse failure stops the loop without appending anything.
    """
    if max_turns < 1:
        raise ConfigError(f"max_turns must be at least 1, got {max_turns}")

    turns = 0
    while turns < max_turns:
        turns += 1
        token_est = estimate_tokens(conversation) if (verbose or report) else None
        if verbose:
            fmt.turn_header(turns, max_turns, token_est)

        t0 = time.monotonic()
        try:
            reply = provider.send(model, conversation)
        except ProviderError as e:
            elapsed = time.monotonic() - t0
            # A missing key fails before any request is made.
            if report and not isinstance(e, MissingCredentialError):
                report.record_llm_call(turns, elapsed, token_est, "error", error=str(e))
            if verbose:
                fmt.completion(turns, "aborted")
            return LoopResult("aborted", turns, f"error calling provider: {e}")
        elapsed = time.monotonic() - t0
        if report:
            report.record_llm_call(turns, elapsed, token_est, "ok")
        if verbose:
            fmt.llm_timing(elapsed, provider.name)
            shown = reply
            if len(shown) > MAX_REPLY_LOG:
                shown = shown[:MAX_REPLY_LOG] + "\n... (truncated)"
            fmt.assistant_text(shown)

        try:
            ops = parse_operations(reply)
        except ParseError as e:
            if verbose:
                fmt.completion(turns, "aborted")
            return LoopResult("aborted", turns, f"parse error: {e}")

        if is_completion(ops):
            if verbose:
                fmt.completion(turns, "done")
            return LoopResult("done", turns)
        if verbose and any(op.done for op in ops):
            fmt.completion_ignored(len(ops))

        transcript = execute_operations(ops, verbose=verbose, report=report, turn=turns)
        conversation.append("assistant", reply)
        conversation.append("user", transcript)

        if verbose:
            fmt.context_stats(
                f"Context after turn {turns}", estimate_tokens(conversation)
            )

    if verbose:
        fmt.completion(turns, "max_turns")
    return LoopResult("exhausted", turns)


_SETTING_FLAGS = (
    "provider",
    "model",
    "base_url",
    "max_turns",
    "max_output_tokens",
    "temperature",
    "color",
    "quiet",
)


def build_parser():
    """Build and return the argument parser.

    Setting flags default to None, meaning "not given here": config files
    and built-in defaults fill them in later.
    """
    parser = argparse.ArgumentParser(
        prog="minicoder",
        description="A minimal coding agent: the model replies with JSON shell/edit "
        "operations that are run locally until it signals completion.",
    )
    parser.add_argument(
        "--version",
        action="store_true",
        help="Print the version and exit.",
    )
    parser.add_argument(
        "--prompt",
        "-prompt",
        default=None,
        help="The task for the model (required).",
    )
    parser.add_argument(
        "--provider",
        "-provider",
        choices=sorted(PROVIDERS),
        help="Model provider (default: openai).",
    )
    parser.add_argument(
        "--model",
        "-model",
        help="Model name (default: gpt-3.5-turbo).",
    )
    parser.add_argument(
        "--max-turns",
        type=int,
        help=f"Maximum agent loop iterations (default: {DEFAULT_MAX_TURNS}).",
    )
    parser.add_argument(
        "--base-url",
        help="Override the provider's API base URL.",
    )
    parser.add_argument(
        "--max-output-tokens",
        type=int,
        help="Maximum output tokens per reply (default: provider default).",
    )
    parser.add_argument(
        "--temperature",
        type=float,
        help="Sampling temperature (default: provider default).",
    )
    parser.add_argument(
        "-q",
        "--quiet",
        action="store_const",
        const=True,
        help="Suppress diagnostics on stderr; only print status lines.",
    )
    parser.add_argument(
        "--report",
        metavar="FILE",
        help="Write a JSON run report to FILE.",
    )

    color_group = parser.add_mutually_exclusive_group()
    color_group.add_argument(
        "--color",
        dest="color",
        action="store_const",
        const=True,
        help="Force ANSI color even when stderr is not a TTY.",
    )
    color_group.add_argument(
        "--no-color",
        dest="color",
        action="store_const",
        const=False,
        help="Disable ANSI color even when stderr is a TTY.",
    )

    parser.add_argument(
        "--init-config",
        action="store_true",
        help="Print a commented config template and exit.",
    )
    parser.add_argument(
        "--project",
        action="store_true",
        help="With --init-config, print the project (minicoder.toml) variant.",
    )

    return parser


def main():
    parser = build_parser()
    args = parser.parse_args()

    if args.version:
        try:
            version = metadata.version("minicoder")
        except metadata.PackageNotFoundError:
            version = "unknown"
        print(version)
        sys.exit(0)

    if args.init_config:
        print(generate_config(project=args.project), end="")
        sys.exit(0)

    if not args.prompt:
        print("prompt required")
        sys.exit(1)

    try:
        settings = resolve_settings(
            {flag: getattr(args, flag) for flag in _SETTING_FLAGS}, Path.cwd()
        )
    except ConfigError as e:
        fmt.error(str(e))
        sys.exit(1)

    fmt.init(color=settings.color)
    verbose = not settings.quiet
    report = ReportCollector() if args.report else None

    def _write_report(outcome, exit_code=0, turns=0, error_message=None):
        if not report:
            return
        report.finalize(
            task=args.prompt,
            model=settings.model,
            provider=settings.provider,
            settings=settings.request_settings(),
            outcome=outcome,
            exit_code=exit_code,
            turns=turns,
            error_message=error_message,
        )
        try:
            report.write(args.report)
        except OSError as e:
            fmt.error(f"Failed to write report to {args.report}: {e}")
            return
        if verbose:
            fmt.info(f"Report written to {args.report}")

    try:
        result = _run_main(args.prompt, settings, report)
    except AgentError as e:
        fmt.error(str(e))
        _write_report("error", exit_code=1, error_message=str(e))
        sys.exit(1)

    _write_report(result.status, turns=result.turns, error_message=result.reason)


def _run_main(prompt: str, settings: Settings, report) -> LoopResult:
    provider = create_provider(
        settings.provider,
        base_url=settings.base_url,
        max_output_tokens=settings.max_output_tokens,
        temperature=settings.temperature,
    )
    if settings.max_turns < 1:
        raise ConfigError(f"--max-turns must be at least 1, got {settings.max_turns}")

    verbose = not settings.quiet
    if verbose:
        endpoint = settings.base_url or provider.endpoint.format(model=settings.model)
        fmt.model_info(f"Using {provider.name} model {settings.model} via {endpoint}")

    conversation = build_conversation(prompt)
    result = run_agent_loop(
        conversation,
        provider,
        model=settings.model,
        max_turns=settings.max_turns,
        verbose=verbose,
        report=report,
    )

    if result.status == "done":
        print("Task complete")
    elif result.status == "aborted":
        print(result.reason)
    else:
        print("max turns reached")
    return result
