"""Application layer: composition root and command-line interface."""

from __future__ import annotations

from workflow_notifier.app.bootstrap import Notifier, build_notifier, stores_from_config

__all__ = [
    "Notifier",
    "build_notifier",
    "stores_from_config",
]
