"""Entry point for `python -m release_cli` and the `relquery` console script."""

from __future__ import annotations

from release_cli.app import app


def main() -> None:
    app()


if __name__ == "__main__":
    main()
