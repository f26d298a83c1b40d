import sys

from .commands import run_cli


def main() -> None:
    sys.exit(run_cli())


__all__ = ["run_cli", "main"]
