"""Run settings for minicoder, layered from defaults, TOML files and CLI flags.

Layers, lowest first: built-in defaults, the global file
($XDG_CONFIG_HOME/minicoder/config.toml), the project file
(./minicoder.toml), then flags given on the command line. Credentials are
not settings: each provider reads its key from the environment.
"""

import os
import tomllib
from dataclasses import dataclass
from pathlib import Path

from . import fmt
from .providers import DEFAULT_MODEL, DEFAULT_PROVIDER
from .report import ConfigError

PROJECT_FILE = "minicoder.toml"
GLOBAL_FILE = "config.toml"


@dataclass
class Settings:
    provider: str = DEFAULT_PROVIDER
    model: str = DEFAULT_MODEL
    base_url: str | None = None
    max_turns: int = 20
    max_output_tokens: int | None = None
    temperature: float | None = None
    color: bool | None = None  # None: let Rich detect the terminal
    quiet: bool = False

    def merge(self, values: dict) -> "Settings":
        """Overlay `values` onto these settings, skipping None entries."""
        for key, value in values.items():
            if value is not None:
                setattr(self, key, value)
        return self

    def request_settings(self) -> dict:
        """The subset echoed into run reports."""
        return {
            "max_turns": self.max_turns,
            "base_url": self.base_url,
            "max_output_tokens": self.max_output_tokens,
            "temperature": self.temperature,
        }


# TOML value types accepted per key. TOML booleans never count as numbers.
_ACCEPTED: dict[str, tuple[type, ...]] = {
    "provider": (str,),
    "model": (str,),
    "base_url": (str,),
    "max_turns": (int,),
    "max_output_tokens": (int,),
    "temperature": (int, float),
    "color": (bool,),
    "quiet": (bool,),
}


def global_config_dir() -> Path:
    xdg = os.environ.get("XDG_CONFIG_HOME")
    base = Path(xdg) if xdg else Path.home() / ".config"
    return base / "minicoder"


def config_paths(base_dir: Path) -> list[Path]:
    """Config files in increasing precedence."""
    return [global_config_dir() / GLOBAL_FILE, Path(base_dir).resolve() / PROJECT_FILE]


def _checked(table: dict, path: Path) -> dict:
    values = {}
    for key, value in table.items():
        accepted = _ACCEPTED.get(key)
        if accepted is None:
            fmt.warning(f"{path}: unknown config key {key!r} ignored")
            continue
        if type(value) not in accepted:
            names = " or ".join(t.__name__ for t in accepted)
            raise ConfigError(
                f"{path}: {key!r} expected {names}, got {type(value).__name__}"
            )
        values[key] = value
    if values.get("max_turns", 1) < 1:
        raise ConfigError(f"{path}: 'max_turns' must be at least 1")
    return values


def read_config_file(path: Path) -> dict:
    """Return the validated settings in one TOML file, or {} if it is absent."""
    try:
        raw = path.read_bytes()
    except FileNotFoundError:
        return {}
    except OSError as e:
        raise ConfigError(f"{path}: cannot read: {e}") from e
    try:
        table = tomllib.loads(raw.decode("utf-8"))
    except (tomllib.TOMLDecodeError, UnicodeDecodeError) as e:
        raise ConfigError(f"{path}: invalid TOML: {e}") from e
    return _checked(table, path)


def load_config(base_dir: Path) -> dict:
    """Merged file settings; only keys that some file actually sets."""
    merged: dict = {}
    for path in config_paths(base_dir):
        merged.update(read_config_file(path))
    return merged


def resolve_settings(cli: dict, base_dir: Path) -> Settings:
    """Defaults, then config files under `base_dir`, then non-None CLI values."""
    return Settings().merge(load_config(base_dir)).merge(cli)


_TEMPLATE = [
    ("Provider and model", [
        ("provider", '"openai"', "openai | anthropic | gemini | xai"),
        ("model", '"gpt-3.5-turbo"', None),
        ("base_url", '"https://..."', "replaces the provider's endpoint"),
    ]),
    ("Generation", [
        ("max_output_tokens", "4096", None),
        ("temperature", "0.7", None),
    ]),
    ("Agent loop", [
        ("max_turns", "20", None),
    ]),
    ("Output", [
        ("color", "true", "false disables color; unset auto-detects"),
        ("quiet", "false", "true prints status lines only"),
    ]),
]


def generate_config(project: bool = False) -> str:
    """A fully commented template; uncomment a line to set it."""
    where = f"<project>/{PROJECT_FILE}" if project else f"~/.config/minicoder/{GLOBAL_FILE}"
    out = [
        f"# minicoder {'Project' if project else 'Global'} config ({where})",
        "# Command-line flags take precedence. API keys come from OPENAI_API_KEY,",
        "# ANTHROPIC_API_KEY, GEMINI_API_KEY or XAI_API_KEY, never from here.",
    ]
    for title, entries in _TEMPLATE:
        out += ["", f"# [{title}]"]
        for key, example, note in entries:
            line = f"# {key} = {example}"
            out.append(f"{line:<36}# {note}" if note else line)
    return "\n".join(out) + "\n"
