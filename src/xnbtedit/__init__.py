"""xnbtedit - edit binary NBT files as XML or SNBT text."""

from __future__ import annotations

__version__ = "0.4.0"
