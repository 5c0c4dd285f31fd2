"""Tests for minicoder.config: layered run settings from TOML files and flags."""

import tomllib

import pytest

from minicoder.config import (
    ConfigError,
    Settings,
    config_paths,
    generate_config,
    global_config_dir,
    load_config,
    read_config_file,
    resolve_settings,
)


def _write_toml(path, content):
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(content, encoding="utf-8")


@pytest.fixture(autouse=True)
def empty_global(tmp_path, monkeypatch):
    monkeypatch.setenv("XDG_CONFIG_HOME", str(tmp_path / "empty"))


# ---------------------------------------------------------------------------
# Settings
# ---------------------------------------------------------------------------


class TestSettings:
    def test_defaults(self):
        s = Settings()
        assert s.provider == "openai"
        assert s.model == "gpt-3.5-turbo"
        assert s.max_turns == 20
        assert s.base_url is None
        assert s.color is None
        assert s.quiet is False

    def test_merge_skips_none(self):
        s = Settings().merge({"model": "gpt-4o", "base_url": None, "quiet": True})
        assert s.model == "gpt-4o"
        assert s.base_url is None
        assert s.quiet is True

    def test_merge_keeps_false(self):
        s = Settings(color=True).merge({"color": False})
        assert s.color is False

    def test_request_settings(self):
        s = Settings(max_turns=3, temperature=0.5)
        assert s.request_settings() == {
            "max_turns": 3,
            "base_url": None,
            "max_output_tokens": None,
            "temperature": 0.5,
        }


# ---------------------------------------------------------------------------
# Config files
# ---------------------------------------------------------------------------


class TestLoadConfig:
    def test_missing_files_returns_empty(self, tmp_path):
        assert load_config(tmp_path) == {}

    def test_global_only(self, tmp_path, monkeypatch):
        global_dir = tmp_path / "global_cfg"
        monkeypatch.setenv("XDG_CONFIG_HOME", str(global_dir))
        _write_toml(global_dir / "minicoder" / "config.toml", 'provider = "anthropic"\n')
        assert load_config(tmp_path / "project") == {"provider": "anthropic"}

    def test_project_overrides_global(self, tmp_path, monkeypatch):
        global_dir = tmp_path / "global"
        monkeypatch.setenv("XDG_CONFIG_HOME", str(global_dir))
        _write_toml(
            global_dir / "minicoder" / "config.toml",
            'max_turns = 10\nmodel = "grok-beta"\n',
        )
        _write_toml(tmp_path / "minicoder.toml", "max_turns = 50\n")
        assert load_config(tmp_path) == {"max_turns": 50, "model": "grok-beta"}

    def test_paths_in_precedence_order(self, tmp_path):
        paths = config_paths(tmp_path)
        assert paths[0] == tmp_path / "empty" / "minicoder" / "config.toml"
        assert paths[1] == tmp_path.resolve() / "minicoder.toml"

    def test_unknown_keys_warn_and_are_dropped(self, tmp_path, capsys):
        _write_toml(tmp_path / "minicoder.toml", 'api_key = "sk-nope"\nmodel = "m"\n')
        assert load_config(tmp_path) == {"model": "m"}
        assert "unknown config key 'api_key'" in capsys.readouterr().err

    def test_invalid_toml(self, tmp_path):
        _write_toml(tmp_path / "minicoder.toml", "invalid = [\n")
        with pytest.raises(ConfigError, match="invalid TOML"):
            load_config(tmp_path)

    def test_non_utf8_file(self, tmp_path):
        (tmp_path / "minicoder.toml").write_bytes(b'model = "\xff"\n')
        with pytest.raises(ConfigError, match="invalid TOML"):
            load_config(tmp_path)

    def test_unreadable_path(self, tmp_path):
        (tmp_path / "minicoder.toml").mkdir()
        with pytest.raises(ConfigError, match="cannot read"):
            read_config_file(tmp_path / "minicoder.toml")


class TestTypeValidation:
    def test_string_where_int_expected(self, tmp_path):
        _write_toml(tmp_path / "minicoder.toml", 'max_turns = "many"\n')
        with pytest.raises(ConfigError, match="'max_turns' expected int, got str"):
            load_config(tmp_path)

    def test_int_accepted_for_temperature(self, tmp_path):
        _write_toml(tmp_path / "minicoder.toml", "temperature = 1\n")
        assert load_config(tmp_path)["temperature"] == 1

    def test_bool_is_not_a_number(self, tmp_path):
        _write_toml(tmp_path / "minicoder.toml", "max_output_tokens = true\n")
        with pytest.raises(ConfigError, match="got bool"):
            load_config(tmp_path)

    def test_bool_for_string_field(self, tmp_path):
        _write_toml(tmp_path / "minicoder.toml", "provider = true\n")
        with pytest.raises(ConfigError, match="expected str"):
            load_config(tmp_path)

    def test_zero_max_turns(self, tmp_path):
        _write_toml(tmp_path / "minicoder.toml", "max_turns = 0\n")
        with pytest.raises(ConfigError, match="at least 1"):
            load_config(tmp_path)


class TestResolveSettings:
    def test_files_fill_defaults(self, tmp_path):
        _write_toml(tmp_path / "minicoder.toml", 'provider = "gemini"\ncolor = false\n')
        s = resolve_settings({}, tmp_path)
        assert s.provider == "gemini"
        assert s.color is False
        assert s.model == "gpt-3.5-turbo"

    def test_cli_beats_files(self, tmp_path):
        _write_toml(tmp_path / "minicoder.toml", "max_turns = 42\nquiet = true\n")
        s = resolve_settings({"max_turns": 5, "quiet": None}, tmp_path)
        assert s.max_turns == 5
        assert s.quiet is True

    def test_parsed_flags_flow_through(self, tmp_path):
        _write_toml(tmp_path / "minicoder.toml", 'model = "grok-2"\n')

        from minicoder.agent import _SETTING_FLAGS, build_parser

        args = build_parser().parse_args(["-provider", "xai", "--no-color", "-prompt", "t"])
        s = resolve_settings({f: getattr(args, f) for f in _SETTING_FLAGS}, tmp_path)
        assert s.provider == "xai"
        assert s.model == "grok-2"
        assert s.color is False
        assert s.quiet is False

    def test_unset_flags_are_none(self):
        from minicoder.agent import _SETTING_FLAGS, build_parser

        args = build_parser().parse_args(["-prompt", "t"])
        assert all(getattr(args, f) is None for f in _SETTING_FLAGS)


class TestGlobalConfigDir:
    def test_respects_xdg(self, tmp_path, monkeypatch):
        monkeypatch.setenv("XDG_CONFIG_HOME", str(tmp_path))
        assert global_config_dir() == tmp_path / "minicoder"

    def test_default_home(self, tmp_path, monkeypatch):
        monkeypatch.delenv("XDG_CONFIG_HOME", raising=False)
        monkeypatch.setenv("HOME", str(tmp_path))
        assert global_config_dir() == tmp_path / ".config" / "minicoder"


class TestGenerateConfig:
    def test_uncommented_template_is_valid_toml(self):
        lines = []
        for line in generate_config().splitlines():
            stripped = line.lstrip("# ").strip()
            if "=" in stripped:
                lines.append(stripped)
        parsed = tomllib.loads("\n".join(lines))
        assert parsed["provider"] == "openai"
        assert parsed["max_turns"] == 20
        assert set(parsed) == {
            "provider",
            "model",
            "base_url",
            "max_output_tokens",
            "temperature",
            "max_turns",
            "color",
            "quiet",
        }

    def test_project_variant(self):
        assert "Project config" in generate_config(project=True)
        assert "minicoder.toml" in generate_config(project=True)
        assert "Global config" in generate_config()
