"""
Path resolution for goto-work.

Package-relative paths (templates) are resolved from this file's location.
User paths live under ``~/.claude/goto-work`` next to the Claude Code
settings they hook into.
"""

from __future__ import annotations

from pathlib import Path

DEFAULT_CONFIG_PATH = "~/.claude/goto-work/config.yaml"
LOG_FILE_NAME = "goto-work.log"


def get_package_root() -> Path:
    """
    Get the root directory of the goto_work package.

    This file is at .../goto_work/lib/paths.py, so the root is 2 levels up.
    """
    return Path(__file__).resolve().parent.parent


def get_templates_dir() -> Path:
    """Get templates directory (package_root/templates)."""
    return get_package_root() / "templates"


def expand_path(path: str | Path) -> Path:
    """Expand a leading ``~`` to the user's home directory."""
    return Path(path).expanduser()


def get_default_config_path() -> Path:
    return expand_path(DEFAULT_CONFIG_PATH)


def get_log_file_path(config_path: Path) -> Path:
    """Debug log file, written next to the config file."""
    return config_path.parent / LOG_FILE_NAME
