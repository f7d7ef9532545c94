from models.password_reset_tokens import PasswordResetToken
from services.password_service import PasswordService

RESET_MESSAGE = {"message": "If the email exists, a reset link has been sent"}


async def test_reset_request_known_email(client, session, client_user):
    response = await client.post("/api/auth/password-reset-request", json={"email": client_user.email})

    assert response.status_code == 200
    assert response.json() == RESET_MESSAGE
    assert session.query(PasswordResetToken).filter(PasswordResetToken.user_id == client_user.id).count() == 1


async def test_reset_request_unknown_email_is_indistinguishable(client, session, client_user):
    known = await client.post("/api/auth/password-reset-request", json={"email": client_user.email})
    unknown = await client.post("/api/auth/password-reset-request", json={"email": "ghost@example.com"})

    assert unknown.status_code == known.status_code == 200
    assert unknown.json() == known.json() == RESET_MESSAGE
    assert session.query(PasswordResetToken).count() == 1


async def test_reset_request_invalid_email(client):
    response = await client.post("/api/auth/password-reset-request", json={"email": "not-an-email"})

    assert response.status_code == 400


async def test_complete_reset_flow(client, session, client_user):
    """Reset, log in with the new password, and fail to reuse the token."""
    login = await client.post("/api/auth/login", json={"username": "patient", "password": "TestPassword123!"})
    old_refresh = login.json()["refresh_token"]

    _, raw_token = PasswordService.request_reset(session, client_user.email)

    response = await client.post("/api/auth/password-reset", json={
        "token": raw_token,
        "new_password": "NewPassword456"
    })
    assert response.status_code == 200

    # Sessions were revoked
    response = await client.post("/api/auth/refresh", json={"refresh_token": old_refresh})
    assert response.status_code == 401

    # Old password no longer works, new one does
    response = await client.post("/api/auth/login", json={"username": "patient", "password": "TestPassword123!"})
    assert response.status_code == 401
    response = await client.post("/api/auth/login", json={"username": "patient", "password": "NewPassword456"})
    assert response.status_code == 200

    # Single use
    response = await client.post("/api/auth/password-reset", json={
        "token": raw_token,
        "new_password": "ThirdPassword789"
    })
    assert response.status_code == 400
    assert response.json() == {"error": "Invalid or expired token"}


async def test_complete_reset_camel_case(client, session, client_user):
    _, raw_token = PasswordService.request_reset(session, client_user.email)

    response = await client.post("/api/v1/users/auth/password-reset", json={
        "token": raw_token,
        "newPassword": "NewPassword456"
    })

    assert response.status_code == 200


async def test_complete_reset_invalid_token(client):
    response = await client.post("/api/auth/password-reset", json={
        "token": "invalid-token",
        "new_password": "NewPassword456"
    })

    assert response.status_code == 400
    assert response.json() == {"error": "Invalid or expired token"}


async def test_complete_reset_weak_password(client, session, client_user):
    _, raw_token = PasswordService.request_reset(session, client_user.email)

    response = await client.post("/api/auth/password-reset", json={
        "token": raw_token,
        "new_password": "weak"
    })

    assert response.status_code == 400
    assert session.query(PasswordResetToken).one().used_at is None
