"""
Name: Claim Processor Unit Tests

Responsibilities:
  - Test the create_claim pipeline (event, reward, duplicates, condition)
  - Verify approval / rejection / completion lifecycle
  - Verify per (user, event) locking and duplicate protection under threads

Collaborators:
  - reward_engine.application.claim_processor.ClaimProcessor
  - In-memory engine from tests/conftest.py
"""

import threading
from datetime import timedelta

import pytest
from reward_engine.application.claim_processor import ClaimProcessor, claim_lock_key
from reward_engine.domain.entities import ClaimStatus, EventStatus
from reward_engine.domain.errors import (
    ClaimInProgressError,
    ClaimNotFoundError,
    DuplicateClaimError,
    EventConditionNotMetError,
    EventNotActiveError,
    EventNotFoundError,
    InvalidStatusTransitionError,
    RewardNotFoundError,
    RewardNotLinkedError,
    ValidationError,
)


@pytest.mark.unit
class TestCreateClaim:
    def test_auto_approved_reward_is_completed(self, engine, login_event, point_reward, record_logins):
        """R: Should complete claims for rewards without manual approval."""
        record_logins("user-1", 3)

        claim = engine.claims.create_claim("user-1", login_event.id, point_reward.id)

        assert claim.status is ClaimStatus.COMPLETED
        assert claim.request_date == engine.clock()
        assert claim.metadata["claimed_at"] == engine.clock().isoformat()
        assert claim.metadata["validation_result"]["condition_type"] == "login"
        assert claim.process_date == engine.clock()
        assert engine.claim_repo.find_by_id(claim.id).status is ClaimStatus.COMPLETED
        assert engine.claim_repo.find_by_id(claim.id).process_date == engine.clock()

    def test_manual_approval_reward_stays_pending(self, engine, login_event, approval_reward, record_logins):
        """R: Should leave claims PENDING when the reward requires approval."""
        record_logins("user-1", 3)

        claim = engine.claims.create_claim("user-1", login_event.id, approval_reward.id)

        assert claim.status is ClaimStatus.PENDING
        assert [c.id for c in engine.claims.find_by_status("pending")] == [claim.id]

    def test_unknown_event(self, engine, point_reward):
        """R: Should raise EventNotFoundError for missing events."""
        with pytest.raises(EventNotFoundError):
            engine.claims.create_claim("user-1", "missing", point_reward.id)

    def test_inactive_event(self, engine, login_event, point_reward, record_logins):
        """R: Should reject claims for events that are not ACTIVE."""
        record_logins("user-1", 3)
        engine.events.change_status(login_event.id, "inactive")

        with pytest.raises(EventNotActiveError) as exc_info:
            engine.claims.create_claim("user-1", login_event.id, point_reward.id)

        assert exc_info.value.error_code == "VALIDATION_ERROR"
        assert exc_info.value.details["event_status"] == "inactive"

    def test_expired_event_is_rejected_and_marked(self, engine, login_event, point_reward, record_logins):
        """R: Should reject claims after end_date and persist EXPIRED."""
        record_logins("user-1", 3)
        engine.clock.advance(days=11)

        with pytest.raises(EventNotActiveError):
            engine.claims.create_claim("user-1", login_event.id, point_reward.id)

        assert engine.event_repo.find_by_id(login_event.id).status is EventStatus.EXPIRED

    def test_unknown_reward(self, engine, login_event):
        """R: Should raise RewardNotFoundError for missing rewards."""
        with pytest.raises(RewardNotFoundError):
            engine.claims.create_claim("user-1", login_event.id, "missing")

    def test_reward_from_other_event(self, engine, login_event, custom_event, record_logins):
        """R: Should reject rewards linked to a different event."""
        other = engine.rewards.create(event_id=custom_event.id, reward_type="point")
        record_logins("user-1", 3)

        with pytest.raises(RewardNotLinkedError):
            engine.claims.create_claim("user-1", login_event.id, other.id)

    def test_condition_not_met_carries_metadata(self, engine, login_event, point_reward, record_logins):
        """R: Should raise EventConditionNotMetError and store nothing."""
        record_logins("user-1", 1)

        with pytest.raises(EventConditionNotMetError) as exc_info:
            engine.claims.create_claim("user-1", login_event.id, point_reward.id)

        assert exc_info.value.details["condition_type"] == "login"
        assert engine.claims.find_by_user_id("user-1") == []

    def test_duplicate_for_same_event(self, engine, login_event, point_reward, approval_reward, record_logins):
        """R: Should allow a single claim per user and event."""
        record_logins("user-1", 3)
        engine.claims.create_claim("user-1", login_event.id, point_reward.id)

        with pytest.raises(DuplicateClaimError):
            engine.claims.create_claim("user-1", login_event.id, approval_reward.id)

        assert len(engine.claims.find_by_user_id("user-1")) == 1

    def test_other_users_can_claim(self, engine, login_event, point_reward, record_logins):
        """R: Should scope duplicates to the user."""
        record_logins("user-1", 3)
        record_logins("user-2", 3)

        engine.claims.create_claim("user-1", login_event.id, point_reward.id)
        engine.claims.create_claim("user-2", login_event.id, point_reward.id)

        assert len(engine.claims.find_by_event_id(login_event.id)) == 2

    def test_duplicate_without_lock_manager(self, engine, login_event, point_reward, record_logins):
        """R: Should still reject duplicates when locking is disabled."""
        processor = ClaimProcessor(
            engine.claim_repo, engine.events, engine.rewards, engine.evaluator, clock=engine.clock
        )
        record_logins("user-1", 3)
        processor.create_claim("user-1", login_event.id, point_reward.id)

        with pytest.raises(DuplicateClaimError):
            processor.create_claim("user-1", login_event.id, point_reward.id)


@pytest.mark.unit
class TestClaimLocking:
    def test_busy_lock_raises_claim_in_progress(self, engine, login_event, point_reward, record_logins):
        """R: Should fail fast when another request holds the claim lock."""
        record_logins("user-1", 3)
        handle = engine.lock_manager.acquire_lock(claim_lock_key("user-1", login_event.id))
        assert handle.success

        with pytest.raises(ClaimInProgressError) as exc_info:
            engine.claims.create_claim("user-1", login_event.id, point_reward.id)

        assert exc_info.value.error_code == "CLAIM_IN_PROGRESS"
        handle.release()
        claim = engine.claims.create_claim("user-1", login_event.id, point_reward.id)
        assert claim.is_completed()

    def test_lock_is_released_after_failure(self, engine, login_event, point_reward):
        """R: Should release the claim lock when the pipeline raises."""
        with pytest.raises(EventConditionNotMetError):
            engine.claims.create_claim("user-1", login_event.id, point_reward.id)

        assert not engine.lock_manager.is_locked(claim_lock_key("user-1", login_event.id))

    def test_concurrent_requests_create_one_claim(self, engine, login_event, point_reward, record_logins):
        """R: Should create exactly one claim when requests race."""
        record_logins("user-1", 3)
        workers = 8
        barrier = threading.Barrier(workers)
        results: list[str] = []
        results_lock = threading.Lock()

        def attempt() -> None:
            barrier.wait()
            try:
                engine.claims.create_claim("user-1", login_event.id, point_reward.id)
                outcome = "created"
            except (DuplicateClaimError, ClaimInProgressError) as exc:
                outcome = exc.error_code
            with results_lock:
                results.append(outcome)

        threads = [threading.Thread(target=attempt) for _ in range(workers)]
        for t in threads:
            t.start()
        for t in threads:
            t.join(timeout=10)

        assert len(results) == workers
        assert results.count("created") == 1
        assert len(engine.claim_repo.find_by_user_and_event("user-1", login_event.id)) == 1


@pytest.mark.unit
class TestClaimLifecycle:
    @pytest.fixture
    def pending_claim(self, engine, login_event, approval_reward, record_logins):
        record_logins("user-1", 3)
        return engine.claims.create_claim("user-1", login_event.id, approval_reward.id)

    def test_approve_and_complete(self, engine, pending_claim):
        """R: Should move PENDING -> APPROVED -> COMPLETED."""
        engine.clock.advance(minutes=10)

        approved = engine.claims.approve(pending_claim.id, "admin-1")
        assert approved.status is ClaimStatus.APPROVED
        assert approved.approver_id == "admin-1"
        assert approved.process_date == engine.clock()

        completed = engine.claims.complete(pending_claim.id)
        assert completed.status is ClaimStatus.COMPLETED
        assert engine.claims.find_by_id(pending_claim.id).is_completed()

    def test_reject(self, engine, pending_claim):
        """R: Should reject PENDING claims with a reason."""
        rejected = engine.claims.reject(pending_claim.id, "admin-1", "duplicate account")

        assert rejected.status is ClaimStatus.REJECTED
        assert rejected.rejection_reason == "duplicate account"
        with pytest.raises(InvalidStatusTransitionError):
            engine.claims.complete(pending_claim.id)

    def test_rejected_claim_still_blocks_new_claims(self, engine, login_event, point_reward, pending_claim):
        """R: Should count rejected claims for duplicate detection."""
        engine.claims.reject(pending_claim.id, "admin-1", "no")

        assert engine.claims.has_claimed_reward("user-1", login_event.id) is True
        with pytest.raises(DuplicateClaimError):
            engine.claims.create_claim("user-1", login_event.id, point_reward.id)

    def test_complete_requires_approval(self, engine, pending_claim):
        """R: Should not complete PENDING claims."""
        with pytest.raises(InvalidStatusTransitionError):
            engine.claims.complete(pending_claim.id)

    def test_unknown_claim(self, engine):
        """R: Should raise ClaimNotFoundError for missing claims."""
        with pytest.raises(ClaimNotFoundError):
            engine.claims.approve("missing", "admin-1")


@pytest.mark.unit
class TestClaimQueries:
    def test_find_by_status_rejects_unknown_status(self, engine):
        """R: Should raise ValidationError for unknown status strings."""
        with pytest.raises(ValidationError):
            engine.claims.find_by_status("archived")

    def test_find_by_event_id_requires_event(self, engine):
        """R: Should raise EventNotFoundError for missing events."""
        with pytest.raises(EventNotFoundError):
            engine.claims.find_by_event_id("missing")

    def test_listing_newest_first(self, engine, login_event, custom_event, point_reward, record_logins):
        """R: Should list a user's claims by request date, newest first."""
        record_logins("user-1", 3)
        engine.ledger.record("user-1", "custom", "user-register")
        other = engine.rewards.create(event_id=custom_event.id, reward_type="coupon")

        first = engine.claims.create_claim("user-1", login_event.id, point_reward.id)
        engine.clock.advance(minutes=1)
        second = engine.claims.create_claim("user-1", custom_event.id, other.id)

        assert [c.id for c in engine.claims.find_by_user_id("user-1")] == [second.id, first.id]
        assert engine.claims.has_claimed_reward("user-2", login_event.id) is False

    def test_claim_window_is_inclusive_of_end_date(self, engine, login_event, point_reward, record_logins):
        """R: Should accept claims exactly at end_date."""
        record_logins("user-1", 3)
        engine.clock.now = login_event.end_date

        claim = engine.claims.create_claim("user-1", login_event.id, point_reward.id)

        assert claim.is_completed()
        engine.clock.advance(seconds=1)
        assert engine.events.find_by_id(login_event.id).status is EventStatus.EXPIRED
