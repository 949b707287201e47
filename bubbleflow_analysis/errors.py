from __future__ import annotations

from typing import Iterable, List


class ConfigurationError(ValueError):
    """Raised when view or rendering-rule configuration is malformed."""


class DataValidationError(ValueError):
    """Raised when a raw payload fails validation.

    Every violation found is collected into ``errors`` so callers can report
    them together instead of fixing one field at a time.
    """

    def __init__(self, errors: Iterable[str]):
        self.errors: List[str] = list(errors)
        summary = "; ".join(self.errors) if self.errors else "invalid payload"
        super().__init__(f"Payload validation failed ({len(self.errors)} error(s)): {summary}")
