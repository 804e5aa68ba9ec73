"""Tests for the public root and health endpoints."""

from bitsettler import __version__


class TestHealthEndpoints:
    """Root and health endpoints need no authentication."""

    def test_root(self, test_client):
        response = test_client.get("/")

        assert response.status_code == 200
        assert response.json() == {"message": "Bitsettler API", "version": __version__}

    def test_health(self, test_client):
        response = test_client.get("/health")

        assert response.status_code == 200
        assert response.json() == {
            "status": "ok",
            "version": __version__,
            "game_data_enabled": False,
        }

    def test_unknown_route_uses_error_envelope(self, test_client):
        response = test_client.get("/does-not-exist")

        assert response.status_code == 404
        assert response.json()["success"] is False
