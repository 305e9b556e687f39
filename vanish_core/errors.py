from __future__ import annotations


class PlacementError(ValueError):
    """A placement violated an engine precondition. `reason` is a short code."""

    def __init__(self, reason: str, message: str):
        super().__init__(message)
        self.reason = reason


class MalformedMessage(ValueError):
    """An inbound payload is missing a field or has a field of the wrong type."""
