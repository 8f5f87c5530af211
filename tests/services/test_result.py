"""Tests for ServiceResult and ServiceError."""

import json

import pytest
from pydantic import ValidationError

from dotoring.domain.types import SkipReason
from dotoring.services.result import ServiceError, ServiceResult


class TestServiceResult:
    def test_success_construction(self) -> None:
        result = ServiceResult(ok=True, op="schedule_for", data={"coupon_id": "c1"})
        assert result.ok is True
        assert result.data == {"coupon_id": "c1"}
        assert result.warnings == []
        assert result.error is None
        assert result.meta is None
        assert result.skipped is False

    def test_skip_is_success_with_reason(self) -> None:
        result = ServiceResult.skip("schedule_for", SkipReason.PERMISSION_OFF, coupon_id="c1")
        assert result.ok is True
        assert result.skipped is True
        assert result.data == {"skipped": True, "reason": "permission_off", "coupon_id": "c1"}

    def test_fail(self) -> None:
        result = ServiceResult.fail("reschedule_all", "FETCH_FAILED", "offline", user_id="u1")
        assert result.ok is False
        assert result.error == ServiceError(
            code="FETCH_FAILED", message="offline", detail={"user_id": "u1"}
        )

    def test_json_serialization(self) -> None:
        result = ServiceResult(ok=True, op="plan", data={"count": 2}, meta={"duration_ms": 4})
        parsed = json.loads(result.model_dump_json())
        assert parsed["op"] == "plan"
        assert parsed["data"]["count"] == 2
        assert parsed["meta"]["duration_ms"] == 4

    def test_frozen(self) -> None:
        result = ServiceResult(ok=True, op="test")
        with pytest.raises(ValidationError):
            result.ok = False  # type: ignore[misc]
