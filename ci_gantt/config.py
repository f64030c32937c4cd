"""Load and validate the YAML configuration."""

from __future__ import annotations

import os
from pathlib import Path
from typing import Any, Dict

import yaml

CONFIG_ENV_VAR = "CI_GANTT_CONFIG"
DEFAULT_CONFIG_PATH = Path(__file__).resolve().parent / "timeline.yaml"


def load_config(path: Path) -> Dict[str, Any]:
    """Read the YAML config from disk and validate its top-level type."""
    if not path.exists():
        raise RuntimeError(f'Config file not found: "{path}"')
    try:
        data = yaml.safe_load(path.read_text(encoding="utf-8"))
    except Exception as e:
        raise RuntimeError(f'Failed to read config "{path}": {e}') from e
    if not isinstance(data, dict):
        raise RuntimeError(f'Config file "{path}" must be a YAML mapping at top level')
    return data


def _resolve_config_path() -> Path:
    """Resolve the config path from env override or default."""
    override = os.environ.get(CONFIG_ENV_VAR, "").strip()
    if override:
        return Path(override).expanduser().resolve()
    return DEFAULT_CONFIG_PATH


_CONFIG_PATH = _resolve_config_path()
_CONFIG = load_config(_CONFIG_PATH)


def get_config_path() -> Path:
    """Expose the resolved config path for diagnostics."""
    return _CONFIG_PATH


def _require_section(name: str, kind: type) -> Any:
    """Fetch a required config section and validate its type."""
    value = _CONFIG.get(name)
    if not isinstance(value, kind):
        raise RuntimeError(f'Config section "{name}" missing or not a {kind.__name__}')
    return value


def _require_value(section: Dict[str, Any], section_name: str, key: str, kind: type) -> Any:
    value = section.get(key)
    # bool is an int subclass; keep "max_chars: true" from passing as 1.
    if not isinstance(value, kind) or (kind is not bool and isinstance(value, bool)):
        raise RuntimeError(f'Config value "{section_name}.{key}" missing or not a {kind.__name__}')
    return value


def get_render_config() -> Dict[str, Any]:
    """Return diagram rendering settings."""
    render = _require_section("render", dict)
    return {
        "max_chars": _require_value(render, "render", "max_chars", int),
        "max_name_length": _require_value(render, "render", "max_name_length", int),
        "show_waiting_runner": _require_value(render, "render", "show_waiting_runner", bool),
        "show_composite_actions": _require_value(render, "render", "show_composite_actions", bool),
    }


def get_matching_config() -> Dict[str, Any]:
    """Return log/step matching settings."""
    matching = _require_section("matching", dict)
    tolerance = matching.get("tolerance_seconds")
    if isinstance(tolerance, bool) or not isinstance(tolerance, (int, float)) or tolerance < 0:
        raise RuntimeError('Config value "matching.tolerance_seconds" must be a non-negative number')
    return {"tolerance_seconds": float(tolerance)}


def get_github_config() -> Dict[str, Any]:
    """Return optional GitHub API settings or defaults."""
    github = _CONFIG.get("github")
    if github is None:
        github = {}
    if not isinstance(github, dict):
        raise RuntimeError('Config section "github" must be a mapping')
    return {
        "api_url": str(github.get("api_url") or "https://api.github.com"),
        "token_env": str(github.get("token_env") or "GITHUB_TOKEN"),
        "timeout_s": int(github.get("timeout_s") or 60),
        "per_page": int(github.get("per_page") or 100),
    }
