"""Configuration file loading and merging for chatconcise.

Reads TOML config from ~/.config/chatconcise/config.toml (global) and
<cwd>/chatconcise.toml (project). Precedence: CLI > project > global > defaults.
"""

import argparse
import os
import sys
import tomllib
from pathlib import Path
from typing import Any

from .errors import ConfigError

_UNSET = object()  # Sentinel for "not set by CLI"


# --- Schema ---

CONFIG_KEYS: dict[str, type | tuple[type, ...]] = {
    "model": str,
    "base_url": str,
    "max_tokens": int,
    "temperature": (int, float),
    "session_dir": str,
    "max_iterations": int,
    "command_timeout": int,
    "priming_prompt": str,
    "vision_detail": str,
    "reasoning_markers": list,
    "color": bool,
    "quiet": bool,
}

_LIST_OF_STR_KEYS = {"reasoning_markers"}
VISION_DETAILS = ("auto", "low", "high")

# Argparse dest -> hardcoded default
_ARGPARSE_DEFAULTS: dict[str, Any] = {
    "model": "o1-mini",
    "base_url": "https://api.openai.com/v1",
    "max_tokens": 2048,
    "temperature": 0.6,
    "session_dir": None,
    "max_iterations": None,
    "command_timeout": None,
    "priming_prompt": None,
    "vision_detail": "high",
    "reasoning_markers": ["o1-"],
    "color": False,
    "no_color": False,
    "quiet": False,
}


# --- Internal helpers ---


def global_config_dir() -> Path:
    """Return the global config directory, respecting XDG_CONFIG_HOME."""
    xdg = os.environ.get("XDG_CONFIG_HOME")
    if xdg:
        return Path(xdg) / "chatconcise"
    return Path.home() / ".config" / "chatconcise"


def _type_name(expected: type | tuple[type, ...]) -> str:
    """Format the accepted types for an error message."""
    if expected is list:
        return "list"
    if isinstance(expected, tuple):
        return " or ".join(t.__name__ for t in expected)
    return expected.__name__


def _validate_config(config: dict, source: str) -> None:
    """Validate value types in a parsed config dict.

    Raises ConfigError for type mismatches and non-positive bounds.
    Prints warnings for unknown keys.
    """
    for key, value in config.items():
        if key not in CONFIG_KEYS:
            print(f"warning: {source}: unknown config key {key!r}", file=sys.stderr)
            continue

        expected = CONFIG_KEYS[key]
        # isinstance(True, int) is True
        if isinstance(value, bool) and expected is not bool:
            raise ConfigError(
                f"{source}: {key!r} expected {_type_name(expected)}, got bool"
            )
        if not isinstance(value, expected):
            raise ConfigError(
                f"{source}: {key!r} expected {_type_name(expected)}, got {type(value).__name__}"
            )

        if key in _LIST_OF_STR_KEYS:
            for i, elem in enumerate(value):
                if not isinstance(elem, str):
                    raise ConfigError(
                        f"{source}: {key}[{i}]: expected string, got {type(elem).__name__}"
                    )

    for key in ("max_iterations", "command_timeout", "max_tokens"):
        if key in config and config[key] < 1:
            raise ConfigError(f"{source}: {key!r} must be at least 1")

    if config.get("vision_detail", "high") not in VISION_DETAILS:
        raise ConfigError(
            f"{source}: 'vision_detail' must be one of {', '.join(VISION_DETAILS)}"
        )


def _resolve_paths(config: dict, config_dir: Path) -> None:
    """Expand ~ in session_dir, then anchor relative paths at config_dir."""
    if "session_dir" in config:
        expanded = Path(config["session_dir"]).expanduser()
        if not expanded.is_absolute():
            expanded = config_dir / expanded
        config["session_dir"] = str(expanded)


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


def load_config(base_dir: "str | Path") -> dict:
    """Load and merge global + project config.

    Returns a flat dict with only the keys actually set in config files
    (no defaults injected), with session_dir resolved to an absolute path.
    """
    global_path = global_config_dir() / "config.toml"
    global_config = _load_single(global_path, str(global_path))
    _resolve_paths(global_config, global_path.parent)

    project_path = Path(base_dir).resolve() / "chatconcise.toml"
    project_config = _load_single(project_path, str(project_path))
    _resolve_paths(project_config, project_path.parent)

    return {**global_config, **project_config}


def apply_config_to_args(args: argparse.Namespace, config: dict) -> None:
    """Apply config values to argparse namespace where CLI didn't set a value.

    Values still set to _UNSET (or missing) take the config value, then any
    remaining sentinels are replaced with hardcoded defaults.
    """

    def _is_unset(dest: str) -> bool:
        return getattr(args, dest, _UNSET) is _UNSET

    # Special handling for color: single config key controls mutual-exclusive pair
    if "color" in config:
        color_val = config["color"]
        if _is_unset("color") and _is_unset("no_color"):
            args.color = color_val
            args.no_color = not color_val

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
    lines = [
        "# chatconcise configuration file",
        f"# {'Project' if project else 'Global'} config: "
        f"{'<cwd>/chatconcise.toml' if project else '~/.config/chatconcise/config.toml'}",
        "#",
        "# CLI flags override these values. Only uncomment what you need.",
        "",
        "# --- Model / endpoint ---",
        '# model = "o1-mini"                 # only used when a new session starts',
        '# base_url = "https://api.openai.com/v1"',
        '# reasoning_markers = ["o1-"]      # models matching these skip max_tokens/temperature',
        "",
        "# --- Generation parameters ---",
        "# max_tokens = 2048",
        "# temperature = 0.6",
        '# priming_prompt = "You are ChatConcise..."',
        '# vision_detail = "high"',
        "",
        "# --- Sessions ---",
        '# session_dir = "/tmp"              # relative paths resolve against this file',
        "",
        "# --- Agent mode ---",
        "# max_iterations = 25              # absent = run until the model says DONE",
        "# command_timeout = 120            # seconds; absent = no timeout",
        "",
        "# --- UI ---",
        "# color = true       # true = force color, false = force no-color, absent = auto",
        "# quiet = false",
        "",
    ]
    return "\n".join(lines)
