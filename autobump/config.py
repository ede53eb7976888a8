"""Configuration for autobump.

Settings are merged from (lowest to highest precedence) built-in defaults,
a YAML config file, ``AUTOBUMP_*`` environment variables and explicit
command-line overrides.
"""

from __future__ import annotations

from pathlib import Path
from typing import Any

import yaml
from pydantic import ValidationError
from pydantic_settings import BaseSettings

from autobump.errors import ConfigError

DEFAULT_CONFIG_NAME = ".autobump.yaml"


class Settings(BaseSettings):
    """Run configuration with AUTOBUMP_ environment variable prefix."""

    path: str = "."
    exclude: list[str] = []
    cvss_threshold: float = 7.0
    skip_tidy: bool = False
    dry_run: bool = False
    allow_major: bool = False

    # VEX generation for unfixed vulnerabilities
    generate_vex: bool = False
    vex_output: str = ".vex.openvex.json"

    # External tools
    go_command: str = "go"
    trivy_command: str = "trivy"
    skip_db_update: bool = False
    command_timeout_seconds: int = 600

    # AI justification (OpenAI-compatible by default)
    ai_provider: str = "auto"  # auto, openai, anthropic, gemini, generic
    ai_api_key: str = ""
    ai_endpoint: str = "https://api.openai.com/v1"
    ai_model: str = "gpt-4o"
    ai_timeout_seconds: float = 60
    ai_anthropic_model: str = "claude-sonnet-4-20250514"
    ai_anthropic_base_url: str = "https://api.anthropic.com"
    ai_gemini_model: str = "gemini-2.0-flash"
    ai_gemini_base_url: str = "https://generativelanguage.googleapis.com/v1beta"

    model_config = {"env_prefix": "AUTOBUMP_"}


def _normalize_keys(data: dict[str, Any]) -> dict[str, Any]:
    """Flatten the YAML layout (kebab-case, nested ``ai:``) onto Settings field names."""
    flat: dict[str, Any] = {}
    for key, value in data.items():
        name = str(key).replace("-", "_")
        if name == "ai" and isinstance(value, dict):
            for ai_key, ai_value in value.items():
                flat[f"ai_{str(ai_key).replace('-', '_')}"] = ai_value
            continue
        flat[name] = value
    return {k: v for k, v in flat.items() if k in Settings.model_fields}


def _default_config_paths() -> list[Path]:
    return [Path.cwd() / DEFAULT_CONFIG_NAME, Path.home() / DEFAULT_CONFIG_NAME]


def read_config_file(config_file: str | Path | None = None) -> tuple[dict[str, Any], Path | None]:
    """Read the YAML config file.

    An explicit path must exist; the default locations are optional.
    Returns (values, path_used).
    """
    if config_file:
        candidates = [Path(config_file)]
        if not candidates[0].is_file():
            raise ConfigError(f"config file not found: {config_file}")
    else:
        candidates = [p for p in _default_config_paths() if p.is_file()]

    if not candidates:
        return {}, None

    path = candidates[0]
    try:
        with open(path) as f:
            data = yaml.safe_load(f)
    except yaml.YAMLError as e:
        raise ConfigError(f"{path}: invalid YAML: {e}") from e

    if data is None:
        return {}, path
    if not isinstance(data, dict):
        raise ConfigError(f"{path}: expected a YAML mapping at top level")
    return _normalize_keys(data), path


def _build(label: str, **values: Any) -> Settings:
    try:
        return Settings(**values)
    except ValidationError as e:
        problems = "; ".join(
            f"{'.'.join(str(p) for p in err['loc']) or 'settings'}: {err['msg']}" for err in e.errors()
        )
        raise ConfigError(f"invalid {label}: {problems}") from e


def load_settings(config_file: str | Path | None = None, **overrides: Any) -> Settings:
    """Build Settings from file, environment and explicit overrides.

    Overrides whose value is None are ignored so unset CLI flags fall
    through to lower-precedence sources. Invalid values from any source
    raise ConfigError.
    """
    file_values, path = read_config_file(config_file)
    env_values = _build("AUTOBUMP_ environment").model_dump(exclude_unset=True)
    # Environment beats the file, explicit overrides beat both.
    merged = {**file_values, **env_values}
    merged.update({k: v for k, v in overrides.items() if v is not None})
    return _build(f"configuration ({path})" if path else "configuration", **merged)
