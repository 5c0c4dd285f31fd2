"""Error taxonomy and JSON run reports."""

import json
from datetime import datetime, timezone


class AgentError(Exception):
    """Raised by the agent loop or setup helpers for reportable runtime failures."""


class ConfigError(AgentError):
    """Raised for invalid configuration (unknown provider, bad config file, etc.)."""


class ProviderError(AgentError):
    """Raised when a model provider call fails or returns nothing usable."""


class MissingCredentialError(ProviderError):
    """Raised when the provider's API key is not present in the environment."""


class EmptyResponseError(ProviderError):
    """Raised when the provider envelope carries no reply text."""


class ParseError(AgentError):
    """Raised when a model reply is not a valid operation array."""


def _seconds(value: float) -> float:
    return round(value, 3)


class ReportCollector:
    """Timeline of one run; every summary figure is derived from it.

    Events are dicts with ``turn``, ``type`` ("llm_call" or "operation")
    and ``duration_s``, plus type-specific fields.
    """

    def __init__(self):
        self.events: list[dict] = []
        self._last_report: dict | None = None

    def record_llm_call(
        self,
        turn: int,
        duration: float,
        token_est: int | None,
        outcome: str,
        *,
        error: str | None = None,
    ):
        self._add(
            turn, "llm_call", duration, prompt_tokens_est=token_est, outcome=outcome, error=error
        )

    def record_operation(
        self,
        turn: int,
        kind: str,
        detail: str | None,
        succeeded: bool,
        duration: float,
        result_length: int,
        error: str | None = None,
    ):
        self._add(
            turn,
            "operation",
            duration,
            kind=kind,
            detail=detail,
            succeeded=succeeded,
            result_length=result_length,
            error=error,
        )

    def _add(self, turn: int, type_: str, duration: float, *, error=None, **fields):
        event = {"turn": turn, "type": type_, "duration_s": _seconds(duration), **fields}
        if error is not None:
            event["error"] = error
        self.events.append(event)

    def _of_type(self, type_: str) -> list[dict]:
        return [e for e in self.events if e["type"] == type_]

    @property
    def llm_calls(self) -> int:
        return len(self._of_type("llm_call"))

    @property
    def total_llm_time(self) -> float:
        return sum(e["duration_s"] for e in self._of_type("llm_call"))

    @property
    def total_operation_time(self) -> float:
        return sum(e["duration_s"] for e in self._of_type("operation"))

    @property
    def max_turn_seen(self) -> int:
        return max((e["turn"] for e in self.events), default=0)

    @property
    def operation_stats(self) -> dict[str, dict[str, int]]:
        """Per-kind success and failure counts, in first-seen order."""
        stats: dict[str, dict[str, int]] = {}
        for e in self._of_type("operation"):
            counts = stats.setdefault(e["kind"], {"succeeded": 0, "failed": 0})
            counts["succeeded" if e["succeeded"] else "failed"] += 1
        return stats

    def build_report(
        self,
        *,
        task: str,
        model: str,
        provider: str,
        settings: dict,
        outcome: str,
        exit_code: int,
        turns: int,
        error_message: str | None = None,
    ) -> dict:
        by_kind = self.operation_stats
        ok = sum(c["succeeded"] for c in by_kind.values())
        failed = sum(c["failed"] for c in by_kind.values())

        result = {"outcome": outcome, "exit_code": exit_code}
        if error_message is not None:
            result["error_message"] = error_message

        return {
            "version": 1,
            "timestamp": datetime.now(timezone.utc).isoformat(),
            "task": task,
            "model": model,
            "provider": provider,
            "settings": settings,
            "result": result,
            "stats": {
                "turns": turns,
                "llm_calls": self.llm_calls,
                "total_llm_time_s": _seconds(self.total_llm_time),
                "operations_total": ok + failed,
                "operations_succeeded": ok,
                "operations_failed": failed,
                "operations_by_kind": by_kind,
                "total_operation_time_s": _seconds(self.total_operation_time),
            },
            "timeline": list(self.events),
        }

    def finalize(self, **kwargs) -> dict:
        """Build the report (same arguments as build_report) and keep it for write()."""
        self._last_report = self.build_report(**kwargs)
        return self._last_report

    def write(self, path: str):
        if self._last_report is None:
            raise AgentError("report written before finalize()")
        with open(path, "w", encoding="utf-8") as f:
            json.dump(self._last_report, f, indent=2)
            f.write("\n")
