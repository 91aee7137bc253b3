"""Internal helpers not part of the public API."""

from __future__ import annotations

from . import validation

__all__ = ["validation"]
