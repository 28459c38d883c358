"""Unit tests for typed engine errors."""

import pytest
from reward_engine.domain.errors import (
    ClaimInProgressError,
    ConflictError,
    DuplicateClaimError,
    DuplicateIdempotencyKeyError,
    EventConditionNotMetError,
    EventNotActiveError,
    EventNotFoundError,
    InvalidStatusTransitionError,
    NotFoundError,
    RewardEngineError,
    ValidationError,
)
from reward_engine.infrastructure.db.errors import DatabaseError


@pytest.mark.unit
class TestErrorTaxonomy:
    @pytest.mark.parametrize(
        "error,code,base",
        [
            (EventNotFoundError("evt-1"), "NOT_FOUND", NotFoundError),
            (EventNotActiveError("inactive"), "VALIDATION_ERROR", ValidationError),
            (InvalidStatusTransitionError("event", "expired", "active"), "INVALID_STATUS_TRANSITION", RewardEngineError),
            (DuplicateClaimError("dup"), "DUPLICATE_CLAIM", ConflictError),
            (ClaimInProgressError("busy"), "CLAIM_IN_PROGRESS", ConflictError),
            (DuplicateIdempotencyKeyError("idem-1"), "DUPLICATE_IDEMPOTENCY_KEY", ConflictError),
            (EventConditionNotMetError("nope"), "EVENT_CONDITION_NOT_MET", RewardEngineError),
            (DatabaseError("db down"), "DATABASE_ERROR", RewardEngineError),
        ],
    )
    def test_error_codes_and_hierarchy(self, error, code, base):
        """R: Should expose a stable error_code and the expected base class."""
        assert error.error_code == code
        assert isinstance(error, base)

    def test_not_found_message_names_the_entity(self):
        """R: Should name the missing id in message and details."""
        error = EventNotFoundError("evt-42")

        assert str(error) == "Event with ID evt-42 not found"
        assert error.details == {"event_id": "evt-42"}

    def test_transition_error_details(self):
        """R: Should carry entity, current and target status."""
        error = InvalidStatusTransitionError("claim", "pending", "completed")

        assert error.details == {
            "entity": "claim",
            "current": "pending",
            "target": "completed",
        }
        assert "pending" in error.message and "completed" in error.message


@pytest.mark.unit
class TestErrorResponse:
    def test_to_response_includes_details(self):
        """R: Should serialize code, message, id and details."""
        error = EventConditionNotMetError(
            "Event condition is not met",
            details={"condition_type": "login"},
            error_id="err-1",
        )

        payload = error.to_response().to_dict()

        assert payload == {
            "error_code": "EVENT_CONDITION_NOT_MET",
            "message": "Event condition is not met",
            "error_id": "err-1",
            "details": {"condition_type": "login"},
        }

    def test_to_response_omits_empty_details(self):
        """R: Should not emit a details key when there are none."""
        payload = ConflictError("conflict").to_response().to_dict()

        assert "details" not in payload
        assert payload["error_id"]

    def test_original_error_is_kept(self):
        """R: Should keep the wrapped exception for debugging."""
        cause = RuntimeError("boom")
        error = DatabaseError("failed", original_error=cause)

        assert error.original_error is cause
