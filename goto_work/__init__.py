"""goto-work: Claude Code Stop hook that continues interrupted sessions."""

__version__ = "0.3.0"
