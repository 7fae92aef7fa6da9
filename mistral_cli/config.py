"""Configuration file loading and merging for mistral-cli.

Reads TOML config from ~/.config/mistral-cli/config.toml (global) and
<base_dir>/mistral.toml (project). Precedence: CLI > environment > project
> global > defaults.
"""

import argparse
import os
import sys
import tomllib
from pathlib import Path
from typing import Any

from .errors import ConfigError
from .messages import Mode

_UNSET = object()  # Sentinel for "not set by CLI"


# --- Schema ---

CONFIG_KEYS: dict[str, type | tuple[type, ...]] = {
    "api_key": str,
    "linkup_api_key": str,
    "model": str,
    "base_url": str,
    "mode": str,
    "temperature": (int, float),
    "max_tokens": int,
    "no_instructions": bool,
    "color": bool,
    "quiet": bool,
}

# Config key -> environment variable that overrides it
ENV_VARS: dict[str, str] = {
    "api_key": "MISTRAL_API_KEY",
    "linkup_api_key": "LINKUP_API_KEY",
}

# Argparse dest -> hardcoded default
_ARGPARSE_DEFAULTS: dict[str, Any] = {
    "api_key": None,
    "linkup_api_key": None,
    "model": "devstral-medium-2507",
    "base_url": None,
    "mode": Mode.AUTO_ACCEPT_OFF.value,
    "temperature": 0.7,
    "max_tokens": 4000,
    "no_instructions": False,
    "color": False,
    "no_color": False,
    "quiet": False,
}

PROJECT_CONFIG_NAME = "mistral.toml"


# --- Internal helpers ---


def global_config_dir() -> Path:
    """Return the global config directory, respecting XDG_CONFIG_HOME."""
    xdg = os.environ.get("XDG_CONFIG_HOME")
    if xdg:
        return Path(xdg) / "mistral-cli"
    return Path.home() / ".config" / "mistral-cli"


def _type_name(expected: type | tuple[type, ...]) -> str:
    if isinstance(expected, tuple):
        return " or ".join(t.__name__ for t in expected)
    return expected.__name__


def _validate_config(config: dict, source: str) -> None:
    """Validate types in a parsed config dict.

    Raises ConfigError for type mismatches or an unknown mode.
    Prints warnings for unknown keys.
    """
    for key, value in config.items():
        if key not in CONFIG_KEYS:
            print(f"warning: {source}: unknown config key {key!r}", file=sys.stderr)
            continue

        expected = CONFIG_KEYS[key]
        # bool is a subclass of int; reject it for numeric fields.
        if isinstance(value, bool) and expected is not bool:
            raise ConfigError(
                f"{source}: {key!r} expected {_type_name(expected)}, got bool"
            )
        if not isinstance(value, expected):
            raise ConfigError(
                f"{source}: {key!r} expected {_type_name(expected)}, got {type(value).__name__}"
            )

    if "mode" in config:
        try:
            Mode.parse(config["mode"])
        except ValueError as e:
            raise ConfigError(f"{source}: {e}") from None
    if "max_tokens" in config and config["max_tokens"] < 1:
        raise ConfigError(f"{source}: 'max_tokens' must be positive")


def _check_api_key_in_git(config: dict, config_path: Path) -> None:
    """Warn if an API key is set in a project config inside a git repo."""
    keys = [k for k in ("api_key", "linkup_api_key") if k in config]
    if not keys:
        return
    parent = config_path.parent
    while parent != parent.parent:
        if (parent / ".git").exists():
            print(
                f"warning: {config_path}: {keys[0]!r} in a git-tracked project config "
                f"may be committed accidentally. Consider using an environment variable.",
                file=sys.stderr,
            )
            return
        parent = parent.parent


def _load_single(path: Path, label: str) -> dict:
    """Load and validate a single TOML config file. Returns empty dict if missing."""
    if not path.is_file():
        return {}
    try:
        with open(path, "rb") as f:
            config = tomllib.load(f)
    except tomllib.TOMLDecodeError as e:
        raise ConfigError(f"{label}: invalid TOML: {e}") from e

    _validate_config(config, label)
    return {k: v for k, v in config.items() if k in CONFIG_KEYS}


# --- Public API ---


def load_config(base_dir: Path) -> dict:
    """Load and merge global + project config.

    Returns a flat dict holding only keys that were set in config files
    (no defaults injected), with project values overriding global ones.
    """
    global_path = global_config_dir() / "config.toml"
    global_config = _load_single(global_path, str(global_path))

    project_path = Path(base_dir).resolve() / PROJECT_CONFIG_NAME
    project_config = _load_single(project_path, str(project_path))
    if project_config:
        _check_api_key_in_git(project_config, project_path)

    return {**global_config, **project_config}


def apply_config_to_args(args: argparse.Namespace, config: dict) -> None:
    """Fill argparse values the CLI left unset from env, then config, then defaults."""

    def _is_unset(dest: str) -> bool:
        return getattr(args, dest, _UNSET) is _UNSET

    for key, var in ENV_VARS.items():
        value = os.environ.get(var)
        if value and _is_unset(key):
            setattr(args, key, value)

    # A single config key controls the --color/--no-color pair.
    if "color" in config and _is_unset("color") and _is_unset("no_color"):
        args.color = config["color"]
        args.no_color = not config["color"]

    for key, value in config.items():
        if key == "color":
            continue
        if _is_unset(key):
            setattr(args, key, value)

    for dest, default in _ARGPARSE_DEFAULTS.items():
        if _is_unset(dest):
            setattr(args, dest, default)


def generate_config(project: bool = False) -> str:
    """Return a commented-out template config string."""
    location = (
        f"<project>/{PROJECT_CONFIG_NAME}" if project else "~/.config/mistral-cli/config.toml"
    )
    lines = [
        "# mistral-cli configuration file",
        f"# {'Project' if project else 'Global'} config: {location}",
        "#",
        "# CLI flags and environment variables override these values.",
        "# Only uncomment what you need.",
        "",
        "# --- Model ---",
        '# model = "devstral-medium-2507"   # or "devstral-small-2505"',
        '# api_key = "..."                  # prefer MISTRAL_API_KEY',
        '# base_url = "https://api.mistral.ai/v1"',
        "# temperature = 0.7",
        "# max_tokens = 4000",
        "",
        "# --- Agent behaviour ---",
        '# mode = "auto-accept-off"         # "auto-accept-off" | "auto-accept-on" | "plan"',
        "# no_instructions = false",
        "",
        "# --- Web search ---",
        '# linkup_api_key = "..."           # prefer LINKUP_API_KEY',
        "",
        "# --- UI ---",
        "# color = true       # true = force color, false = force no-color, absent = auto",
        "# quiet = false",
        "",
    ]
    return "\n".join(lines)
