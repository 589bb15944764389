"""CLI package for xnbtedit.

Usage:
    from xnbtedit.cli import app
    from xnbtedit.cli import ui
"""

from __future__ import annotations

from xnbtedit.cli import ui
from xnbtedit.cli.main import app

__all__ = ["app", "ui"]
