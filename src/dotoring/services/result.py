"""ServiceResult and ServiceError — the engine's return contract.

INVARIANT: Orchestration entry points return ServiceResult instead of
raising. Skips (feature disabled, permission off, nothing to schedule) are
``ok=True`` results tagged ``skipped``; only genuine failures set ``error``.
"""

from __future__ import annotations

from typing import Any

from pydantic import BaseModel, Field


class ServiceError(BaseModel):
    """Structured error payload within a ServiceResult."""

    model_config = {"frozen": True}

    code: str
    message: str
    detail: dict[str, Any] = Field(default_factory=dict)


class ServiceResult(BaseModel):
    """Return type for orchestration operations.

    Attributes:
        ok: Whether the operation succeeded (a skip is a success).
        op: Name of the operation (e.g. ``"schedule_for"``).
        data: Operation-specific payload.
        warnings: Non-fatal issues encountered during the operation.
        error: Structured error if ``ok`` is False.
        meta: Optional metadata (telemetry spans).
    """

    model_config = {"frozen": True}

    ok: bool
    op: str
    data: dict[str, Any] = Field(default_factory=dict)
    warnings: list[str] = Field(default_factory=list)
    error: ServiceError | None = None
    meta: dict[str, Any] | None = None

    @property
    def skipped(self) -> bool:
        return bool(self.data.get("skipped"))

    @classmethod
    def skip(cls, op: str, reason: str, **data: Any) -> ServiceResult:
        return cls(ok=True, op=op, data={"skipped": True, "reason": str(reason), **data})

    @classmethod
    def fail(cls, op: str, code: str, message: str, **detail: Any) -> ServiceResult:
        return cls(ok=False, op=op, error=ServiceError(code=code, message=message, detail=detail))
