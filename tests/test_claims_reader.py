"""Tests for the client-side claims reader."""

from types import SimpleNamespace

import pytest

from claimsync.models.claims import TokenClaims
from claimsync.models.enums import UserRole
from claimsync.services.claims_reader import ClaimsReaderService
from claimsync.session import SessionManager

FAR_FUTURE = 4_102_444_800


def _refresh_response(uid="bob", app_metadata=None, refresh_token="rt-2"):
    return SimpleNamespace(
        session=SimpleNamespace(
            refresh_token=refresh_token, expires_at=FAR_FUTURE,
        ),
        user=SimpleNamespace(id=uid, app_metadata=app_metadata or {}),
    )


@pytest.fixture
def session():
    manager = SessionManager()
    manager.set_tokens("bob", "rt-1", expires_at=FAR_FUTURE)
    manager.set_claims(TokenClaims(role=UserRole.VIEWER))
    return manager


@pytest.fixture
def reader(supabase_db, session, logger):
    return ClaimsReaderService(db=supabase_db, session=session, logger=logger)


def test_forced_refresh_picks_up_new_claims(reader, session, supabase_client):
    supabase_client.auth.refresh_session.return_value = _refresh_response(app_metadata={
        "role": "viewer", "assignedModules": ["dashboard", "projects"], "assignedProjects": [],
    })

    claims = reader.get_claims(force_refresh=True)

    supabase_client.auth.refresh_session.assert_called_once_with("rt-1")
    assert claims.assigned_modules == ["dashboard", "projects"]
    assert session.claims == claims
    assert session.refresh_token == "rt-2"
    assert session.is_token_expired is False


def test_cached_claims_are_used_without_force(reader, supabase_client):
    claims = reader.get_claims()
    assert claims.role == UserRole.VIEWER
    supabase_client.auth.refresh_session.assert_not_called()


def test_expired_token_is_refreshed_on_read(reader, session, supabase_client):
    session.set_tokens("bob", "rt-1", expires_at=0)
    supabase_client.auth.refresh_session.return_value = _refresh_response(
        app_metadata={"role": "project_manager"},
    )

    claims = reader.get_claims()

    supabase_client.auth.refresh_session.assert_called_once_with("rt-1")
    assert claims.role == UserRole.PROJECT_MANAGER
    assert session.is_token_expired is False


def test_network_error_keeps_cached_claims(reader, session, supabase_client):
    supabase_client.auth.refresh_session.side_effect = ConnectionError("offline")

    claims = reader.refresh_claims()

    assert claims.role == UserRole.VIEWER
    assert session.is_authenticated


def test_rejected_refresh_clears_session(reader, session, supabase_client):
    supabase_client.auth.refresh_session.side_effect = Exception("Invalid Refresh Token")

    assert reader.refresh_claims() is None
    assert session.is_authenticated is False
    assert session.claims is None


def test_unauthenticated_session_has_no_claims(supabase_db, logger, supabase_client):
    reader = ClaimsReaderService(db=supabase_db, session=SessionManager(), logger=logger)
    assert reader.refresh_claims() is None
    supabase_client.auth.refresh_session.assert_not_called()


def test_unconfigured_supabase_keeps_cached_claims(db, session, logger):
    reader = ClaimsReaderService(db=db, session=session, logger=logger)
    assert reader.refresh_claims().role == UserRole.VIEWER


class TestModuleAccess:
    def test_admin_sees_every_module(self, reader, session):
        session.set_claims(TokenClaims(role=UserRole.ADMIN))
        assert reader.can_access_module("capex") is True

    def test_viewer_sees_assigned_modules_only(self, reader, session):
        session.set_claims(TokenClaims(role=UserRole.VIEWER, assigned_modules=["dashboard"]))
        assert reader.can_access_module("dashboard") is True
        assert reader.can_access_module("users") is False

    def test_no_claims_means_no_access(self, reader, session):
        session.set_claims(None)
        assert reader.can_access_module("dashboard") is False
