from jose import jwt

from core.config import settings
from models.audit_logs import AuditAction, AuditLog
from models.refresh_tokens import RefreshToken


async def test_login_success(client, session, client_user):
    """Test successful user login."""
    response = await client.post("/api/auth/login", json={
        "username": client_user.username,
        "password": "TestPassword123!"
    })

    assert response.status_code == 200

    data = response.json()
    assert data["token_type"] == "bearer"
    assert data["user"]["username"] == "patient"
    assert "password_hash" not in data["user"]

    # Verify token claims
    payload = jwt.decode(data["access_token"], settings.SECRET_KEY, algorithms=[settings.ALGORITHM])
    assert payload["sub"] == client_user.id
    assert payload["role"] == "client"
    assert payload["type"] == "access"

    # Refresh token is persisted as a hash only
    assert session.query(RefreshToken).filter(
        RefreshToken.token_hash == data["refresh_token"]
    ).first() is None
    assert session.query(RefreshToken).filter(RefreshToken.user_id == client_user.id).count() == 1

    session.refresh(client_user)
    assert client_user.last_login_at is not None


async def test_login_with_email(client, client_user):
    response = await client.post("/api/auth/login", json={
        "username": "Patient@Example.com",
        "password": "TestPassword123!"
    })

    assert response.status_code == 200


async def test_login_wrong_password_and_unknown_user_look_identical(client, client_user):
    wrong_password = await client.post("/api/auth/login", json={
        "username": client_user.username,
        "password": "WrongPassword123!"
    })
    unknown_user = await client.post("/api/auth/login", json={
        "username": "nobody",
        "password": "WrongPassword123!"
    })

    assert wrong_password.status_code == unknown_user.status_code == 401
    assert wrong_password.json() == unknown_user.json() == {"error": "Invalid credentials"}


async def test_login_inactive_user(client, make_user):
    """Test login for an inactive user"""
    make_user("inactive", is_active=False)

    response = await client.post("/api/auth/login", json={
        "username": "inactive",
        "password": "TestPassword123!"
    })

    assert response.status_code == 401
    assert response.json() == {"error": "Invalid credentials"}


async def test_failed_login_is_audited(client, session, client_user):
    await client.post("/api/auth/login", json={"username": "patient", "password": "nope"})

    entry = session.query(AuditLog).filter(AuditLog.action == AuditAction.LOGIN_FAILED).one()
    assert entry.new_values == {"identifier": "patient"}
    assert entry.user_id is None


async def test_login_missing_fields(client):
    response = await client.post("/api/auth/login", json={"username": "patient"})

    assert response.status_code == 400
    assert "password" in response.json()["error"]


async def test_v1_login_is_camel_case(client, client_user):
    response = await client.post("/api/v1/users/auth/login", json={
        "username": client_user.username,
        "password": "TestPassword123!"
    })

    assert response.status_code == 200
    data = response.json()
    assert "accessToken" in data
    assert "refreshToken" in data
    assert data["tokenType"] == "bearer"
    assert data["user"]["mustChangePassword"] is False
    assert "access_token" not in data
