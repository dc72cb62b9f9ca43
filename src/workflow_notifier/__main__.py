"""Entry point for ``python -m workflow_notifier``."""

from workflow_notifier.app.cli import cli

if __name__ == "__main__":
    cli()
