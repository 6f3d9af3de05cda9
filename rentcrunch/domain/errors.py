# rentcrunch/domain/errors.py
from __future__ import annotations


class InputError(ValueError):
    """User input rejected before any state change. `str(err)` is user-facing."""


class ProviderError(RuntimeError):
    """Listing/rent provider failed or returned something unusable."""
