from unittest.mock import MagicMock

import jwt
import pytest
from sqlalchemy.exc import OperationalError

from propdesk.auth.security import (
    authenticate,
    authorize_super_admin,
    create_access_token,
    decode_token,
)
from propdesk.config import settings
from propdesk.errors import AccessDenied, Unauthorized


def test_token_roundtrip():
    token = create_access_token("user-1", roles=["super_admin"])
    payload = decode_token(token)
    assert payload["sub"] == "user-1"
    assert payload["roles"] == ["super_admin"]
    assert authenticate(token) == "user-1"


@pytest.mark.parametrize("token", [None, "", "abc.def.ghi"])
def test_authenticate_rejects_bad_tokens(token):
    with pytest.raises(Unauthorized) as exc:
        authenticate(token)
    assert exc.value.status_code == 401
    assert exc.value.message == "Unauthorized"


def test_wrong_secret_and_missing_subject():
    forged = jwt.encode({"sub": "user-1"}, "not-the-secret", algorithm=settings.jwt_algorithm)
    with pytest.raises(Unauthorized):
        authenticate(forged)

    anonymous = jwt.encode({"scope": "x"}, settings.jwt_secret, algorithm=settings.jwt_algorithm)
    with pytest.raises(Unauthorized):
        authenticate(anonymous)


def test_expired_token():
    with pytest.raises(Unauthorized):
        decode_token(create_access_token("user-1", ttl_seconds=-5))


def test_authorize_super_admin(db, super_admin, manager):
    authorize_super_admin(db, super_admin["id"])
    with pytest.raises(AccessDenied) as exc:
        authorize_super_admin(db, manager["id"])
    assert exc.value.status_code == 403
    assert exc.value.message == "Access denied: Super Admin only"


def test_role_lookup_failure_denies():
    db = MagicMock()
    db.execute.side_effect = OperationalError("SELECT", {}, Exception("connection reset"))
    with pytest.raises(AccessDenied):
        authorize_super_admin(db, "user-1")
    db.rollback.assert_called_once()
