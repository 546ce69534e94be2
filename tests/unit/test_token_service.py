"""Unit tests for TokenService.

Covers issuance, verification outcomes (invalid, expired, malformed) and
the separation between access and refresh signing secrets.
"""

from datetime import datetime, timedelta, timezone
from unittest.mock import MagicMock, patch
from uuid import uuid4

import jwt
import pytest

from accounts.errors import AuthError, ExpiredToken, FatalError, InvalidToken, MalformedToken
from accounts.models.user import User
from accounts.services.token_service import JWT_ALGORITHM, TokenService

ACCESS_SECRET = "unit-access-secret-0123456789abcdef0123456789"
REFRESH_SECRET = "unit-refresh-secret-0123456789abcdef012345678"


def _settings(**overrides):
    values = dict(
        access_token_secret=ACCESS_SECRET,
        refresh_token_secret=REFRESH_SECRET,
        access_token_expire_minutes=15,
        refresh_token_expire_days=7,
    )
    values.update(overrides)
    return MagicMock(**values)


@pytest.fixture
def token_service():
    """TokenService with deterministic secrets."""
    with patch("accounts.services.token_service.get_settings") as mock_settings:
        mock_settings.return_value = _settings()
        yield TokenService()


def _claims(token_type="access", **overrides):
    now = datetime.now(timezone.utc)
    payload = {
        "sub": str(uuid4()),
        "type": token_type,
        "iat": now,
        "exp": now + timedelta(minutes=5),
        "jti": uuid4().hex,
    }
    payload.update(overrides)
    return payload


class TestConfiguration:
    def test_identical_secrets_are_fatal(self):
        with patch("accounts.services.token_service.get_settings") as mock_settings:
            mock_settings.return_value = _settings(refresh_token_secret=ACCESS_SECRET)
            with pytest.raises(FatalError, match="distinct"):
                TokenService()

    def test_missing_secret_is_fatal(self):
        with patch("accounts.services.token_service.get_settings") as mock_settings:
            mock_settings.return_value = _settings(access_token_secret="")
            with pytest.raises(FatalError):
                TokenService()


class TestIssue:
    def test_access_token_round_trip(self, token_service):
        user_id = uuid4()
        token = token_service.issue_access_token(user_id, "alice", "alice@x.com")

        claims = token_service.verify(token, "access")

        assert claims.user_id == user_id
        assert claims.token_type == "access"
        assert claims.expires_at - claims.issued_at == timedelta(minutes=15)

    def test_access_token_payload(self, token_service):
        user_id = uuid4()
        token = token_service.issue_access_token(user_id, "alice", "alice@x.com")

        payload = jwt.decode(token, ACCESS_SECRET, algorithms=[JWT_ALGORITHM])
        assert payload["sub"] == str(user_id)
        assert payload["type"] == "access"
        assert payload["username"] == "alice"
        assert payload["email"] == "alice@x.com"
        assert "jti" in payload

    def test_refresh_token_lifetime(self, token_service):
        token = token_service.issue_refresh_token(uuid4())

        claims = token_service.verify(token, "refresh")

        assert claims.token_type == "refresh"
        assert claims.expires_at - claims.issued_at == timedelta(days=7)

    def test_tokens_issued_back_to_back_are_distinct(self, token_service):
        user_id = uuid4()
        assert token_service.issue_refresh_token(user_id) != token_service.issue_refresh_token(user_id)

    def test_issue_token_pair(self, token_service):
        now = datetime.now(timezone.utc)
        user = User(
            id=uuid4(),
            username="alice",
            email="alice@x.com",
            full_name="Alice",
            avatar="https://images.test/a.png",
            created_at=now,
            updated_at=now,
        )

        pair = token_service.issue_token_pair(user)

        assert token_service.verify(pair.access_token, "access").user_id == user.id
        assert token_service.verify(pair.refresh_token, "refresh").user_id == user.id

    def test_signing_failure_is_fatal(self, token_service):
        with patch("accounts.services.token_service.jwt.encode", side_effect=TypeError("boom")):
            with pytest.raises(FatalError, match="generating"):
                token_service.issue_refresh_token(uuid4())


class TestVerify:
    def test_expired_token(self, token_service):
        now = datetime.now(timezone.utc)
        token = jwt.encode(
            _claims(iat=now - timedelta(hours=1), exp=now - timedelta(minutes=1)),
            ACCESS_SECRET,
            algorithm=JWT_ALGORITHM,
        )

        with pytest.raises(ExpiredToken, match="expired"):
            token_service.verify(token, "access")

    def test_tampered_signature(self, token_service):
        token = jwt.encode(_claims(), "some-other-secret-0123456789abcdef0123", algorithm=JWT_ALGORITHM)

        with pytest.raises(InvalidToken):
            token_service.verify(token, "access")

    def test_garbage_is_malformed(self, token_service):
        with pytest.raises(MalformedToken):
            token_service.verify("not.a.jwt.token", "access")

    def test_empty_string_is_malformed(self, token_service):
        with pytest.raises(MalformedToken):
            token_service.verify("", "refresh")

    def test_missing_claim_is_malformed(self, token_service):
        payload = _claims()
        del payload["jti"]
        token = jwt.encode(payload, ACCESS_SECRET, algorithm=JWT_ALGORITHM)

        with pytest.raises(MalformedToken):
            token_service.verify(token, "access")

    def test_non_uuid_subject_is_malformed(self, token_service):
        token = jwt.encode(_claims(sub="user-1"), ACCESS_SECRET, algorithm=JWT_ALGORITHM)

        with pytest.raises(MalformedToken):
            token_service.verify(token, "access")

    def test_type_claim_mismatch(self, token_service):
        """A refresh-typed payload signed with the access secret is still rejected."""
        token = jwt.encode(_claims(token_type="refresh"), ACCESS_SECRET, algorithm=JWT_ALGORITHM)

        with pytest.raises(InvalidToken, match="wrong token type"):
            token_service.verify(token, "access")

    def test_token_errors_are_auth_errors(self, token_service):
        with pytest.raises(AuthError) as exc_info:
            token_service.verify("garbage", "access")
        assert exc_info.value.status_code == 401


class TestSecretSeparation:
    def test_access_token_rejected_as_refresh(self, token_service):
        token = token_service.issue_access_token(uuid4())

        with pytest.raises(InvalidToken):
            token_service.verify(token, "refresh")

    def test_refresh_token_rejected_as_access(self, token_service):
        token = token_service.issue_refresh_token(uuid4())

        with pytest.raises(InvalidToken):
            token_service.verify(token, "access")

    def test_wrong_secret_rejected_even_when_expired(self, token_service):
        """Signature is checked before expiry: the error is InvalidToken, not ExpiredToken."""
        now = datetime.now(timezone.utc)
        token = jwt.encode(
            _claims(token_type="access", iat=now - timedelta(hours=2), exp=now - timedelta(hours=1)),
            REFRESH_SECRET,
            algorithm=JWT_ALGORITHM,
        )

        with pytest.raises(InvalidToken):
            token_service.verify(token, "access")
