async def test_get_me_success(client, client_user, auth_headers):
    """Test getting current user info with valid token."""
    response = await client.get("/api/users/me", headers=auth_headers(client_user))

    assert response.status_code == 200

    user = response.json()["user"]
    assert user["id"] == client_user.id
    assert user["email"] == client_user.email
    assert user["first_name"] == client_user.first_name
    assert user["role"] == "client"
    assert "password_hash" not in user


async def test_get_me_v1(client, client_user, auth_headers):
    response = await client.get("/api/v1/users/me", headers=auth_headers(client_user))

    assert response.status_code == 200
    assert response.json()["user"]["firstName"] == client_user.first_name


async def test_get_me_unauthenticated(client):
    response = await client.get("/api/users/me")

    assert response.status_code == 401


async def test_update_me(client, client_user, auth_headers):
    response = await client.patch(
        "/api/users/me",
        headers=auth_headers(client_user),
        json={"first_name": "Patricia", "phone_number": "+1 650 253 0000"}
    )

    assert response.status_code == 200
    user = response.json()["user"]
    assert user["first_name"] == "Patricia"
    assert user["phone_number"] == "+16502530000"
    assert user["last_name"] == "Tester"


async def test_update_me_cannot_change_role(client, session, client_user, auth_headers):
    response = await client.patch(
        "/api/users/me",
        headers=auth_headers(client_user),
        json={"role": "admin", "is_active": False}
    )

    assert response.status_code == 200
    assert response.json()["user"]["role"] == "client"
    assert response.json()["user"]["is_active"] is True


async def test_update_me_email_conflict(client, client_user, therapist_user, auth_headers):
    response = await client.patch(
        "/api/users/me",
        headers=auth_headers(client_user),
        json={"email": therapist_user.email}
    )

    assert response.status_code == 409
    assert response.json()["field"] == "email"


async def test_update_me_invalid_phone(client, client_user, auth_headers):
    response = await client.patch(
        "/api/users/me",
        headers=auth_headers(client_user),
        json={"phone_number": "12345"}
    )

    assert response.status_code == 400
