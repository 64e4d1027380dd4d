from datetime import datetime, timedelta, timezone

import pytest
from sqlalchemy import update

from licence_admin import repositories, services
from licence_admin.errors import ConstraintViolationError, ValidationError


def _utcnow():
    return datetime.now(timezone.utc).replace(tzinfo=None)


def _backdate(database, session_id, created_at):
    sessions = repositories.sessions
    database.execute(
        update(sessions).where(sessions.c.session_id == session_id).values(created_at=created_at)
    )


def test_expires_at_is_computed_from_created_at(database, applicant):
    saved = services.SessionService(database).save_user_session(
        applicant, {"session_id": "s-1", "access_token": "tok", "token_type": "Bearer"}
    )
    assert saved["expires_in"] == 3600
    assert saved["expires_at"] - saved["created_at"] == timedelta(seconds=3600)


def test_upsert_replaces_token_and_recomputes_expiry(database, applicant):
    svc = services.SessionService(database)
    svc.save_user_session(applicant, {"session_id": "s-1", "access_token": "old"})
    _backdate(database, "s-1", datetime(2000, 1, 1))
    saved = svc.save_user_session(applicant, {"session_id": "s-1", "access_token": "new", "expires_in": 120})
    assert saved["access_token"] == "new"
    assert saved["created_at"] > datetime(2000, 1, 1)
    assert saved["expires_at"] - saved["created_at"] == timedelta(seconds=120)
    assert database.execute("SELECT COUNT(*) FROM user_sessions").scalar() == 1


def test_session_validation(database, applicant):
    svc = services.SessionService(database)
    with pytest.raises(ValidationError, match="Missing required fields: access_token"):
        svc.save_user_session(applicant, {"session_id": "s-1"})
    with pytest.raises(ValidationError, match="expires_in must be a non-negative number of seconds"):
        svc.save_user_session(applicant, {"session_id": "s-1", "access_token": "t", "expires_in": -5})
    with pytest.raises(ValidationError, match="sub is required"):
        svc.save_user_session("", {"session_id": "s-1", "access_token": "t"})


def test_session_for_unknown_user(database):
    with pytest.raises(ConstraintViolationError, match="Failed to save user session: Referenced record does not exist"):
        services.SessionService(database).save_user_session("ghost", {"session_id": "s-1", "access_token": "t"})


def test_cleanup_removes_expired_and_stale_sessions(database, applicant):
    svc = services.SessionService(database)
    svc.save_user_session(applicant, {"session_id": "fresh", "access_token": "t"})
    svc.save_user_session(applicant, {"session_id": "expired", "access_token": "t"})
    svc.save_user_session(applicant, {"session_id": "stale", "access_token": "t", "expires_in": 10 * 365 * 86400})
    _backdate(database, "expired", _utcnow() - timedelta(hours=2))
    _backdate(database, "stale", _utcnow() - timedelta(days=40))

    assert svc.cleanup_expired_sessions(max_age_days=60) == ["expired"]
    assert sorted(svc.cleanup_expired_sessions()) == ["stale"]
    remaining = database.execute("SELECT session_id FROM user_sessions").rows
    assert [r["session_id"] for r in remaining] == ["fresh"]


def test_sessions_are_removed_with_their_user(database, applicant):
    services.SessionService(database).save_user_session(applicant, {"session_id": "s-1", "access_token": "t"})
    database.execute("DELETE FROM users WHERE sub = :sub", {"sub": applicant})
    assert database.execute("SELECT COUNT(*) FROM user_sessions").scalar() == 0
