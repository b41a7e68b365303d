"""Launcher for the hierarchical allocation table."""

from hieralloc_app.app import run_app


if __name__ == "__main__":
    run_app()
