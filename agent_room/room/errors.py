"""Errors raised by the dispatch engine."""

from __future__ import annotations


class DispatchError(Exception):
    """Base class for failures to produce model output."""


class AllModelsExhausted(DispatchError):  # noqa: N818
    """Raised when every candidate is penalized or rate-limited."""

    def __init__(self, attempted: list[str], skipped: list[str]) -> None:
        """Record which models were tried and which were in the penalty box."""
        self.attempted = attempted
        self.skipped = skipped
        msg = f"All models exhausted (attempted={attempted}, penalized={skipped})"
        super().__init__(msg)


class FatalProviderError(DispatchError):
    """Raised when a provider fails in a way another model would not fix."""

    def __init__(self, model_id: str, reason: str) -> None:
        """Record the failing model and the provider's reason."""
        self.model_id = model_id
        self.reason = reason
        super().__init__(f"{model_id}: {reason}")
