"""Public library API for minicoder: Session class and Result dataclass."""

from dataclasses import dataclass

from .providers import DEFAULT_MODEL, DEFAULT_PROVIDER, Provider, create_provider
from .report import ConfigError, ReportCollector


@dataclass
class Result:
    """Result of a session run."""

    status: str
    turns: int
    reason: str | None
    messages: list[dict]
    report: dict | None


class Session:
    """Programmatic interface to the minicoder agent loop.

    `provider` is a provider name ("openai", "anthropic", "gemini", "xai")
    or any object with a ``send(model, conversation)`` method and a
    ``name`` attribute.
    """

    def __init__(
        self,
        *,
        provider: "str | Provider" = DEFAULT_PROVIDER,
        model: str = DEFAULT_MODEL,
        max_turns: int = 20,
        base_url: str | None = None,
        max_output_tokens: int | None = None,
        temperature: float | None = None,
        verbose: bool = False,
        report: bool = False,
    ):
        self.provider = provider
        self.model = model
        self.max_turns = max_turns
        self.base_url = base_url
        self.max_output_tokens = max_output_tokens
        self.temperature = temperature
        self.verbose = verbose
        self.report = report

        self._provider: Provider | None = None

    def _setup(self) -> Provider:
        """Resolve the provider once; the choice is fixed for the session."""
        if self._provider is None:
            if self.max_turns < 1:
                raise ConfigError(f"max_turns must be at least 1, got {self.max_turns}")
            if isinstance(self.provider, str):
                self._provider = create_provider(
                    self.provider,
                    base_url=self.base_url,
                    max_output_tokens=self.max_output_tokens,
                    temperature=self.temperature,
                )
            else:
                self._provider = self.provider
        return self._provider

    def run(self, prompt: str) -> Result:
        """Run the agent on a fresh conversation for `prompt`."""
        from .agent import build_conversation, run_agent_loop

        if not prompt:
            raise ConfigError("prompt required")
        provider = self._setup()

        collector = ReportCollector() if self.report else None
        conversation = build_conversation(prompt)
        loop_result = run_agent_loop(
            conversation,
            provider,
            model=self.model,
            max_turns=self.max_turns,
            verbose=self.verbose,
            report=collector,
        )

        report = None
        if collector:
            report = collector.build_report(
                task=prompt,
                model=self.model,
                provider=provider.name,
                settings={
                    "max_turns": self.max_turns,
                    "base_url": self.base_url,
                    "max_output_tokens": self.max_output_tokens,
                    "temperature": self.temperature,
                },
                outcome=loop_result.status,
                exit_code=0,
                turns=loop_result.turns,
                error_message=loop_result.reason,
            )

        return Result(
            status=loop_result.status,
            turns=loop_result.turns,
            reason=loop_result.reason,
            messages=conversation.as_dicts(),
            report=report,
        )
