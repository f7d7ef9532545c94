from models.refresh_tokens import RefreshToken
from utils.hashing import verify_password


async def test_change_password_success(client, session, client_user, auth_headers):
    """Test successful password change with valid credentials."""
    response = await client.post(
        "/api/auth/change-password",
        headers=auth_headers(client_user),
        json={
            "current_password": "TestPassword123!",
            "new_password": "NewSecurePass456"
        }
    )

    assert response.status_code == 200
    assert response.json() == {"message": "Password changed successfully"}

    session.refresh(client_user)
    assert verify_password("NewSecurePass456", client_user.password_hash)
    assert client_user.must_change_password is False


async def test_change_password_keeps_refresh_tokens(client, session, client_user):
    login = await client.post("/api/auth/login", json={"username": "patient", "password": "TestPassword123!"})
    tokens = login.json()

    await client.post(
        "/api/auth/change-password",
        headers={"Authorization": f"Bearer {tokens['access_token']}"},
        json={"current_password": "TestPassword123!", "new_password": "NewSecurePass456"}
    )

    assert session.query(RefreshToken).filter(RefreshToken.revoked_at.is_(None)).count() == 1


async def test_change_password_wrong_current(client, session, client_user, auth_headers):
    response = await client.post(
        "/api/auth/change-password",
        headers=auth_headers(client_user),
        json={"current_password": "WrongPassword1", "new_password": "NewSecurePass456"}
    )

    assert response.status_code == 401
    assert response.json() == {"error": "Current password is incorrect"}

    session.refresh(client_user)
    assert verify_password("TestPassword123!", client_user.password_hash)


async def test_change_password_weak_new_password(client, client_user, auth_headers):
    response = await client.post(
        "/api/v1/users/auth/change-password",
        headers=auth_headers(client_user),
        json={"currentPassword": "TestPassword123!", "newPassword": "weak"}
    )

    assert response.status_code == 400


async def test_change_password_unauthenticated(client):
    response = await client.post(
        "/api/auth/change-password",
        json={"current_password": "TestPassword123!", "new_password": "NewSecurePass456"}
    )

    assert response.status_code == 401
