async def _login(client, user) -> dict:
    response = await client.post("/api/auth/login", json={
        "username": user.username,
        "password": "TestPassword123!"
    })
    return response.json()


async def test_logout_success(client, client_user):
    """Logout revokes every refresh token the caller holds."""
    first = await _login(client, client_user)
    second = await _login(client, client_user)

    response = await client.post(
        "/api/auth/logout",
        headers={"Authorization": f"Bearer {second['access_token']}"}
    )

    assert response.status_code == 200
    assert "logged out" in response.json()["message"].lower()

    # Verify tokens are revoked - try to use them
    for tokens in (first, second):
        response = await client.post("/api/auth/refresh", json={"refresh_token": tokens["refresh_token"]})
        assert response.status_code == 401


async def test_logout_twice_is_harmless(client, client_user):
    tokens = await _login(client, client_user)
    headers = {"Authorization": f"Bearer {tokens['access_token']}"}

    assert (await client.post("/api/auth/logout", headers=headers)).status_code == 200
    assert (await client.post("/api/auth/logout", headers=headers)).status_code == 200


async def test_logout_requires_token(client):
    response = await client.post("/api/auth/logout")

    assert response.status_code == 401
    assert response.json() == {"error": "Missing token"}


async def test_logout_with_garbage_token(client):
    response = await client.post("/api/auth/logout", headers={"Authorization": "Bearer not-a-token"})

    assert response.status_code == 401
    assert response.json() == {"error": "Invalid or expired token"}
