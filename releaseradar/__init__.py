"""Release radar: scheduled upcoming and trending release lists."""

from __future__ import annotations

__version__ = "1.0.0"
