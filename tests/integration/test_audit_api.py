"""Integration tests for login audit API."""


def _auth(body):
    return {"Authorization": f"Bearer {body['tokens']['access_token']}"}


def _fail_refresh(client, times, ip_address="203.0.113.5"):
    for _ in range(times):
        response = client.post(
            "/api/v1/auth/refresh",
            json={"refresh_token": "guessed"},
            headers={"X-Forwarded-For": ip_address},
        )
        assert response.status_code == 401


class TestLoginHistory:
    """Test login history endpoints."""

    def test_my_history(self, client, alice):
        old_refresh = alice["tokens"]["refresh_token"]
        client.post("/api/v1/auth/refresh", json={"refresh_token": old_refresh})
        client.post("/api/v1/auth/refresh", json={"refresh_token": old_refresh})

        response = client.get("/api/v1/audit/logins/me", headers=_auth(alice))

        assert response.status_code == 200
        history = response.json()
        assert history["total"] == 3
        outcomes = sorted((item["login_method"], item["success"]) for item in history["items"])
        assert outcomes == [
            ("federated_login", True),
            ("token_refresh", False),
            ("token_refresh", True),
        ]
        failure = next(item for item in history["items"] if not item["success"])
        assert failure["error_message"] == "Invalid or expired refresh token"

    def test_history_pagination(self, client, alice, login):
        login()
        login()

        response = client.get("/api/v1/audit/logins/me", params={"page": 2, "limit": 2}, headers=_auth(alice))

        history = response.json()
        assert history["total"] == 3
        assert history["page"] == 2
        assert len(history["items"]) == 1

    def test_ip_history_requires_admin(self, client, alice):
        response = client.get("/api/v1/audit/logins/ip/198.51.100.7", headers=_auth(alice))

        assert response.status_code == 403
        assert response.json() == {"error": "Administrator access required", "type": "HTTPException"}

    def test_ip_history(self, client, alice, admin):
        _fail_refresh(client, 2)

        response = client.get("/api/v1/audit/logins/ip/203.0.113.5", headers=_auth(admin))

        assert response.status_code == 200
        history = response.json()
        assert history["total"] == 2
        assert all(item["user_id"] is None for item in history["items"])


class TestLoginStats:
    """Test login statistics endpoint."""

    def test_my_stats(self, client, alice):
        response = client.get("/api/v1/audit/stats", params={"window": "1 day"}, headers=_auth(alice))

        assert response.status_code == 200
        stats = response.json()
        assert stats["window"] == "1 days"
        assert stats["total"] == 1
        assert stats["successful"] == 1
        assert stats["failed"] == 0
        assert stats["success_rate"] == 100

    def test_bad_window(self, client, alice):
        response = client.get("/api/v1/audit/stats", params={"window": "fortnight"}, headers=_auth(alice))

        assert response.status_code == 422


class TestSuspiciousActivity:
    """Test suspicious activity endpoint."""

    def test_threshold_reached(self, client, admin):
        _fail_refresh(client, 5)
        _fail_refresh(client, 4, ip_address="203.0.113.9")

        response = client.get("/api/v1/audit/suspicious", headers=_auth(admin))

        assert response.status_code == 200
        report = response.json()
        assert report["threshold"] == 5
        assert [(s["key"], s["failed_attempts"]) for s in report["suspicious_ips"]] == [("203.0.113.5", 5)]
        assert report["suspicious_users"] == []

    def test_custom_threshold(self, client, admin):
        _fail_refresh(client, 2)

        response = client.get(
            "/api/v1/audit/suspicious",
            params={"window": "10 minutes", "threshold": 2},
            headers=_auth(admin),
        )

        report = response.json()
        assert report["window"] == "10 minutes"
        assert len(report["suspicious_ips"]) == 1

    def test_requires_admin(self, client, alice):
        response = client.get("/api/v1/audit/suspicious", headers=_auth(alice))

        assert response.status_code == 403
