"""Shared Rich console for the trackmeta command line."""

from __future__ import annotations

from rich.console import Console

# Global console instance (replaced in tests)
_console: Console | None = None


def get_console() -> Console:
    """Get the global Rich console instance, creating it on first use."""
    global _console
    if _console is None:
        _console = Console()
    return _console


def set_console(console: Console | None) -> None:
    """Set the global Rich console instance (None resets it)."""
    global _console
    _console = console
