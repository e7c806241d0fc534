"""Tests for the signup trigger."""

import json
import logging
import threading
from unittest.mock import patch

import pytest

from claimsync.models.enums import UserRole, UserStatus
from claimsync.models.events import IdentityCreatedEvent
from claimsync.models.user import UserProfile
from claimsync.repositories.metadata_repository import MetadataRepository
from claimsync.repositories.user_repository import UserRepository
from claimsync.services.user_counter import CounterTransactionError


@pytest.fixture
def user_repo(db, logger):
    return UserRepository(db=db, logger=logger)


@pytest.fixture
def metadata_repo(db, logger):
    return MetadataRepository(db=db, logger=logger)


def _audit_actions(db, uid):
    rows = db.sqlite.execute(
        "SELECT action FROM audit_log WHERE entity_id = ? ORDER BY id", (uid,)
    ).fetchall()
    return [row["action"] for row in rows]


class TestFirstAndSubsequentUsers:
    def test_first_user_becomes_admin_with_default_modules(
        self, signup, user_repo, metadata_repo, claims_repo, app_config,
    ):
        result = signup("alice", "alice@x.com", "Alice Smith")

        assert result.success is True
        assert result.claims_written is True

        profile = user_repo.get_by_id("alice")
        assert profile.role == UserRole.ADMIN
        assert profile.status == UserStatus.ACTIVE
        assert profile.first_name == "Alice"
        assert profile.last_name == "Smith"
        assert profile.email == "alice@x.com"
        assert profile.assigned_modules == app_config.DEFAULT_ADMIN_MODULES
        assert len(profile.assigned_modules) == 13
        assert profile.assigned_projects == []
        assert profile.created_at is not None

        claims = claims_repo.get_claims("alice")
        assert claims.role == UserRole.ADMIN
        assert claims.assigned_modules == app_config.DEFAULT_ADMIN_MODULES
        assert metadata_repo.get_user_count() == 1

    def test_second_user_becomes_viewer(self, signup, user_repo, metadata_repo, claims_repo):
        signup("alice", "alice@x.com", "Alice Smith")
        result = signup("bob", "bob@x.com", None)

        assert result.success is True
        profile = user_repo.get_by_id("bob")
        assert profile.role == UserRole.VIEWER
        assert profile.status == UserStatus.ACTIVE
        assert (profile.first_name, profile.last_name) == ("bob", "User")
        assert profile.assigned_modules == []

        claims = claims_repo.get_claims("bob")
        assert claims.role == UserRole.VIEWER
        assert claims.assigned_modules == []
        assert claims.assigned_projects == []
        assert metadata_repo.get_user_count() == 2

    def test_missing_email_is_stored_as_empty_string(self, signup, user_repo):
        signup("anon", None, None)
        profile = user_repo.get_by_id("anon")
        assert profile.email == ""
        assert (profile.first_name, profile.last_name) == ("New", "User")

    def test_audit_trail_records_profile_creation(self, signup, db):
        signup("alice", "alice@x.com", "Alice Smith")
        row = db.sqlite.execute(
            "SELECT details FROM audit_log WHERE action = 'PROFILE_CREATE'"
        ).fetchone()
        assert json.loads(row["details"]) == {"role": "admin", "is_first_user": True}


@pytest.mark.concurrency
def test_concurrent_signups_produce_exactly_one_admin(services, user_repo, metadata_repo):
    trigger = services["signup_trigger"]
    workers = 12
    barrier = threading.Barrier(workers)

    def _run(index):
        barrier.wait()
        trigger.handle(IdentityCreatedEvent(uid=f"user-{index}", email=f"u{index}@x.com"))

    threads = [threading.Thread(target=_run, args=(i,)) for i in range(workers)]
    for thread in threads:
        thread.start()
    for thread in threads:
        thread.join(timeout=30)

    roles = [profile.role for profile in user_repo.get_all()]
    assert len(roles) == workers
    assert roles.count(UserRole.ADMIN) == 1
    assert metadata_repo.get_user_count() == workers


class TestFailures:
    def test_counter_failure_creates_no_profile(self, services, user_repo, claims_repo):
        counter = services["user_counter_service"]
        error = CounterTransactionError("aborted", attempts=5)
        with patch.object(counter, "register_signup", side_effect=error):
            result = services["signup_trigger"].handle(IdentityCreatedEvent(uid="alice"))

        assert result.success is False
        assert "Counter transaction failed" in result.error
        assert user_repo.get_by_id("alice") is None
        assert claims_repo.set_calls == []

    def test_transient_claims_failure_is_retried(self, signup, claims_repo):
        claims_repo.fail_next = 2
        result = signup("alice", "alice@x.com", "Alice Smith")

        assert result.success is True
        assert claims_repo.calls_for("alice") == 3
        assert claims_repo.get_claims("alice").role == UserRole.ADMIN

    def test_persistent_claims_failure_keeps_profile_and_is_recorded(
        self, signup, db, user_repo, claims_repo, app_config,
    ):
        claims_repo.fail_always = True
        result = signup("alice", "alice@x.com", "Alice Smith")

        assert result.success is False
        assert result.claims_written is False
        assert claims_repo.calls_for("alice") == app_config.CLAIMS_SET_MAX_ATTEMPTS
        assert user_repo.get_by_id("alice").role == UserRole.ADMIN
        assert _audit_actions(db, "alice") == ["PROFILE_CREATE", "CLAIMS_SYNC_FAILED"]


class TestMergeSemantics:
    def test_merge_preserves_created_at(self, user_repo):
        first = user_repo.merge(UserProfile(uid="u1", first_name="Old"))
        second = user_repo.merge(UserProfile(uid="u1", first_name="New"))

        assert second.first_name == "New"
        assert second.created_at == first.created_at

    def test_build_profile_falls_back_to_email_local_part(self, services):
        event = IdentityCreatedEvent(uid="u1", email="jane.doe@co.com", display_name="  ")
        profile = services["signup_trigger"].build_profile(event, is_first_user=False)
        assert (profile.first_name, profile.last_name) == ("jane.doe", "User")
        assert profile.role == UserRole.VIEWER


class TestRedelivery:
    def test_duplicate_signup_keeps_first_admin(
        self, signup, user_repo, metadata_repo, claims_repo, app_config,
    ):
        first = signup("alice", "alice@x.com", "Alice Admin")
        again = signup("alice", "alice@x.com", "Alice Admin")

        assert first.success is True
        assert again.success is True
        assert again.claims_written is True

        profile = user_repo.get_by_id("alice")
        assert profile.role == UserRole.ADMIN
        assert profile.assigned_modules == app_config.DEFAULT_ADMIN_MODULES
        assert claims_repo.get_claims("alice").role == UserRole.ADMIN
        assert metadata_repo.get_user_count() == 1

    def test_duplicate_signup_does_not_shift_later_users(self, signup, user_repo, metadata_repo):
        signup("alice", "alice@x.com", None)
        signup("alice", "alice@x.com", None)
        signup("bob", "bob@x.com", None)

        assert user_repo.get_by_id("bob").role == UserRole.VIEWER
        assert metadata_repo.get_user_count() == 2

    def test_redelivery_preserves_admin_edits(self, signup, db, user_repo, claims_repo):
        signup("alice", "alice@x.com", None)
        signup("bob", "bob@x.com", None)
        user_repo.update_fields("bob", {"role": "project_manager", "assigned_projects": ["p1"]})

        signup("bob", "bob@x.com", None)

        profile = user_repo.get_by_id("bob")
        assert profile.role == UserRole.PROJECT_MANAGER
        assert profile.assigned_projects == ["p1"]
        assert claims_repo.get_claims("bob").assigned_projects == ["p1"]
        assert _audit_actions(db, "bob").count("PROFILE_CREATE") == 1

    def test_redelivery_repairs_failed_claims_write(self, signup, claims_repo):
        claims_repo.fail_always = True
        assert signup("alice", "alice@x.com", None).success is False
        claims_repo.fail_always = False

        assert signup("alice", "alice@x.com", None).success is True
        assert claims_repo.get_claims("alice").role == UserRole.ADMIN


def test_signup_records_carry_uid_and_trigger(signup, caplog):
    with caplog.at_level(logging.INFO):
        signup("alice", "alice@x.com", None)

    records = [r for r in caplog.records if getattr(r, "uid", None) == "alice"]
    assert records
    trigger_records = [r for r in records if r.getMessage().startswith("[signup]")]
    assert trigger_records
    assert all(r.trigger == "signup" for r in trigger_records)
