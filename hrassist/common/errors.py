"""
Error kinds raised by the retrieval and budgeting core.

Every error carries a machine-readable ``kind`` plus the offending key or
record kind so the caller can decide between a degraded answer and a hard
failure. User-facing wording is never decided here.
"""

from typing import Any, Dict, List, Optional


class HRAssistError(Exception):
    """Base error for the HR Assist core"""

    kind = "error"

    def __init__(
        self,
        message: str,
        *,
        key: Optional[str] = None,
        record_kind: Optional[str] = None,
    ):
        super().__init__(message)
        self.message = message
        self.key = key
        self.record_kind = record_kind

    def to_dict(self) -> Dict[str, Any]:
        return {
            "kind": self.kind,
            "message": self.message,
            "key": self.key,
            "record_kind": self.record_kind,
        }


class DataLoadError(HRAssistError):
    """Backing source is unreadable or malformed. Propagated, never retried."""

    kind = "data_load"


class BatchFetchError(HRAssistError):
    """Upstream failure during a coalesced batch fetch"""

    kind = "batch_fetch"

    def __init__(self, message: str, *, record_kind: str, ids: List[str]):
        super().__init__(message, key=",".join(ids), record_kind=record_kind)
        self.ids = list(ids)

    def to_dict(self) -> Dict[str, Any]:
        data = super().to_dict()
        data["ids"] = self.ids
        return data


class AnalysisDegraded(HRAssistError):
    """Name indexes are unavailable; the analyzer runs pattern-only"""

    kind = "analysis_degraded"


class BudgetExceeded(HRAssistError):
    """A payload component does not fit its token budget"""

    kind = "budget_exceeded"

    def __init__(self, message: str, *, key: str, required: int, budget: int):
        super().__init__(message, key=key)
        self.required = required
        self.budget = budget

    @property
    def overflow(self) -> int:
        return self.required - self.budget
