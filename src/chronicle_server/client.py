"""
HTTP client for the Chronicle Server API.

Used by the ``chronicle-server play`` terminal client.  Every call returns
a standardised result dictionary instead of raising, so the interactive
loop can print the error and keep going.

Configuration:
    CHRONICLE_SERVER_URL: API server URL (default http://localhost:8000)
"""

import os
from typing import Any

import requests

# Turns wait on the oracle and on media rendering; allow for both.
TURN_TIMEOUT = 180


class ChronicleAPIClient:
    """
    Thin synchronous client over the Chronicle Server REST API.

    Attributes:
        server_url: Backend API server URL
    """

    def __init__(self, server_url: str | None = None):
        self.server_url = (server_url or os.getenv("CHRONICLE_SERVER_URL", "http://localhost:8000")).rstrip("/")

    def _make_request(
        self,
        method: str,
        endpoint: str,
        json: dict | None = None,
        timeout: int = 30,
    ) -> dict[str, Any]:
        """
        Make an HTTP request to the backend API.

        Returns:
            Dictionary with structure:
                {
                    "success": bool,
                    "data": dict | None,      # Response data if successful
                    "text": str,              # Raw response body
                    "error": str | None,      # Error message if failed
                    "status_code": int        # HTTP status code (0 if no response)
                }
        """
        url = f"{self.server_url}{endpoint}"

        try:
            response = requests.request(method=method.upper(), url=url, json=json, timeout=timeout)
        except requests.exceptions.ConnectionError:
            return _failure(f"Cannot connect to server at {self.server_url}")
        except requests.exceptions.Timeout:
            return _failure(f"Request timed out after {timeout} seconds")
        except requests.exceptions.RequestException as e:
            return _failure(f"Request failed: {e}")

        try:
            data = response.json()
        except ValueError:
            data = {}

        if response.status_code == 200:
            return {
                "success": True,
                "data": data,
                "text": response.text,
                "error": None,
                "status_code": response.status_code,
            }

        error_msg = data.get("detail") if isinstance(data, dict) else None
        return {
            "success": False,
            "data": None,
            "text": response.text,
            "error": error_msg or f"Request failed with status {response.status_code}",
            "status_code": response.status_code,
        }

    # ------------------------------------------------------------------
    # Endpoints
    # ------------------------------------------------------------------

    def list_personas(self) -> dict[str, Any]:
        return self._make_request("GET", "/personas")

    def start_session(self, **fields: Any) -> dict[str, Any]:
        """Start a scene; ``fields`` are the ``POST /sessions`` body."""
        return self._make_request("POST", "/sessions", json=fields, timeout=TURN_TIMEOUT)

    def submit_turn(
        self,
        scene_id: str,
        player_actions: list[str],
        opponent_actions: list[str] | None = None,
    ) -> dict[str, Any]:
        body: dict[str, Any] = {"player_actions": player_actions}
        if opponent_actions:
            body["opponent_actions"] = opponent_actions
        return self._make_request("POST", f"/sessions/{scene_id}/turn", json=body, timeout=TURN_TIMEOUT)

    def get_scene(self, scene_id: str) -> dict[str, Any]:
        return self._make_request("GET", f"/sessions/{scene_id}")

    def list_chronicles(self) -> dict[str, Any]:
        return self._make_request("GET", "/chronicles")

    def export_chronicle(self, scene_id: str) -> dict[str, Any]:
        """Fetch the HTML chronicle; the page is in ``result["text"]``."""
        return self._make_request("GET", f"/chronicles/{scene_id}/export")


def _failure(error: str) -> dict[str, Any]:
    return {"success": False, "data": None, "text": "", "error": error, "status_code": 0}
