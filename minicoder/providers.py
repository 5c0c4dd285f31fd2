"""Model provider gateway.

Every backend exposes the same capability, ``send(model, conversation)``,
which posts the full conversation and returns the assistant's reply text.
Calls go through LiteLLM with a vendor-specific model prefix; the API key
comes from exactly one environment variable per provider.
"""

import abc
import os

from .conversation import Conversation
from .report import (
    ConfigError,
    EmptyResponseError,
    MissingCredentialError,
    ProviderError,
)


class Provider(abc.ABC):
    """A model backend selected once at startup."""

    name: str
    env_var: str
    litellm_prefix: str
    endpoint: str

    def __init__(
        self,
        *,
        base_url: str | None = None,
        max_output_tokens: int | None = None,
        temperature: float | None = None,
    ):
        self.base_url = base_url
        self.max_output_tokens = max_output_tokens
        self.temperature = temperature

    def api_key(self) -> str:
        key = os.environ.get(self.env_var)
        if not key:
            raise MissingCredentialError(f"{self.env_var} not set")
        return key

    def model_string(self, model: str) -> str:
        """Prefix the model id for LiteLLM routing, without doubling it."""
        prefix = f"{self.litellm_prefix}/"
        if model.startswith(prefix):
            return model
        return prefix + model

    def completion_kwargs(self, model: str, conversation: Conversation) -> dict:
        kwargs = dict(
            model=self.model_string(model),
            messages=conversation.as_dicts(),
            api_key=self.api_key(),
        )
        if self.base_url:
            kwargs["api_base"] = self.base_url
        if self.max_output_tokens is not None:
            kwargs["max_tokens"] = self.max_output_tokens
        if self.temperature is not None:
            kwargs["temperature"] = self.temperature
        return kwargs

    def send(self, model: str, conversation: Conversation) -> str:
        """Send the whole conversation and return the reply text.

        Raises MissingCredentialError before any network activity when the
        key is absent, EmptyResponseError when the reply has no text, and
        ProviderError for any transport or vendor failure. Nothing is retried.
        """
        kwargs = self.completion_kwargs(model, conversation)

        import litellm

        litellm.suppress_debug_info = True

        try:
            response = litellm.completion(**kwargs)
        except Exception as e:
            raise ProviderError(f"{self.name} call failed: {e}") from e
        return self.extract_reply(response)

    @abc.abstractmethod
    def extract_reply(self, response) -> str:
        """Pull the assistant text out of the provider response."""


class ChatCompletionsProvider(Provider):
    """Backends answering with an OpenAI-style ``choices`` list."""

    def extract_reply(self, response) -> str:
        choices = getattr(response, "choices", None)
        if not choices:
            raise EmptyResponseError(f"{self.name}: no choices")
        content = choices[0].message.content
        if content is None:
            raise EmptyResponseError(f"{self.name}: no content in first choice")
        return content


class OpenAIProvider(ChatCompletionsProvider):
    name = "openai"
    env_var = "OPENAI_API_KEY"
    litellm_prefix = "openai"
    endpoint = "https://api.openai.com/v1/chat/completions"


class XAIProvider(ChatCompletionsProvider):
    name = "xai"
    env_var = "XAI_API_KEY"
    litellm_prefix = "xai"
    endpoint = "https://api.x.ai/v1/chat/completions"


class AnthropicProvider(ChatCompletionsProvider):
    name = "anthropic"
    env_var = "ANTHROPIC_API_KEY"
    litellm_prefix = "anthropic"
    endpoint = "https://api.anthropic.com/v1/messages"

    def extract_reply(self, response) -> str:
        # An Anthropic reply with no text blocks comes back as empty content.
        content = super().extract_reply(response)
        if not content:
            raise EmptyResponseError(f"{self.name}: no text content")
        return content


class GeminiProvider(ChatCompletionsProvider):
    name = "gemini"
    env_var = "GEMINI_API_KEY"
    litellm_prefix = "gemini"
    endpoint = (
        "https://generativelanguage.googleapis.com/v1beta/models/"
        "{model}:generateContent"
    )

    def extract_reply(self, response) -> str:
        content = super().extract_reply(response)
        if not content:
            raise EmptyResponseError(f"{self.name}: no candidate parts")
        return content


PROVIDERS: dict[str, type[Provider]] = {
    cls.name: cls
    for cls in (OpenAIProvider, AnthropicProvider, GeminiProvider, XAIProvider)
}

DEFAULT_PROVIDER = "openai"
DEFAULT_MODEL = "gpt-3.5-turbo"


def create_provider(name: str, **kwargs) -> Provider:
    """Look up a provider class by name and instantiate it."""
    try:
        cls = PROVIDERS[name]
    except KeyError:
        choices = ", ".join(sorted(PROVIDERS))
        raise ConfigError(f"unknown provider {name!r} (choose from {choices})")
    return cls(**kwargs)
