import sys

from rich.prompt import Confirm


def confirm_action(message: str, assume_yes: bool = False) -> bool:
    """Ask a y/N question; anything but an explicit yes declines."""
    if assume_yes:
        return True
    if not sys.stdin.isatty():
        return False
    try:
        return Confirm.ask(message, default=False)
    except (EOFError, KeyboardInterrupt):
        return False
