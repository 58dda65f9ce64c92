"""Reconcile outcomes reported to the invoking framework."""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum

import kopf

from ..utils.errors import ReconcileError

# Seconds kopf waits before re-invoking a retryable failure.
RETRY_DELAY_SECONDS = 10.0


class Result(str, Enum):
    SUCCESS = "success"
    RETRYABLE = "retryable"
    TERMINAL = "terminal"


@dataclass(frozen=True)
class Outcome:
    """Result of one reconcile of a PingSource."""

    result: Result
    detail: str = ""
    reason: str = ""

    @classmethod
    def success(cls) -> Outcome:
        return cls(Result.SUCCESS)

    @classmethod
    def retryable(cls, detail: str, reason: str = "") -> Outcome:
        return cls(Result.RETRYABLE, detail, reason)

    @classmethod
    def terminal(cls, detail: str, reason: str = "") -> Outcome:
        return cls(Result.TERMINAL, detail, reason)

    @classmethod
    def from_error(cls, error: ReconcileError) -> Outcome:
        """Classify a reconcile error as retryable or terminal."""
        if error.retryable:
            return cls.retryable(str(error), error.reason)
        return cls.terminal(str(error), error.reason)

    @property
    def ok(self) -> bool:
        return self.result is Result.SUCCESS

    def raise_for_kopf(self, delay: float = RETRY_DELAY_SECONDS) -> None:
        """Translate a failed outcome into kopf's retry contract.

        Raises:
            kopf.TemporaryError: For retryable failures
            kopf.PermanentError: For terminal failures; kopf re-invokes on the next change
        """
        if self.result is Result.RETRYABLE:
            raise kopf.TemporaryError(self.detail, delay=delay)
        if self.result is Result.TERMINAL:
            raise kopf.PermanentError(self.detail)
