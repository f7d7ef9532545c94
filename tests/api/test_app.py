async def test_health(client):
    response = await client.get("/health")

    assert response.status_code == 200
    assert response.json() == {"status": "healthy"}


async def test_request_id_header_generated(client):
    response = await client.get("/health")

    assert response.headers.get("X-Request-ID")


async def test_request_id_header_echoed(client):
    response = await client.get("/health", headers={"X-Request-ID": "trace-123"})

    assert response.headers["X-Request-ID"] == "trace-123"


async def test_unknown_route_uses_error_body(client):
    response = await client.get("/api/does-not-exist")

    assert response.status_code == 404
    assert response.json() == {"error": "Not Found"}


async def test_malformed_json_is_bad_request(client):
    response = await client.post(
        "/api/auth/login",
        content=b"{not json",
        headers={"Content-Type": "application/json"}
    )

    assert response.status_code == 400
    assert "error" in response.json()
