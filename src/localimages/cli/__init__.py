"""CLI package for localimages.

Usage:
    from localimages.cli import app
    from localimages.cli import ui
"""

from __future__ import annotations

from localimages.cli import ui
from localimages.cli.main import app

__all__ = ["app", "ui"]
