"""Locust scenarios for login, profile and refresh-rotation load testing.

Seed the account first::

    python -m dashboard_auth.cli seed-user --name "Load Test" \
        --username loadtest --password Password123!
"""

from __future__ import annotations

import os
from dataclasses import dataclass

from locust import HttpUser, between, events, task


def _env_float(name: str, default: float) -> float:
    """Read a float environment variable with fallback."""
    value = os.environ.get(name)
    if value is None:
        return default
    try:
        return float(value)
    except ValueError:
        return default


@dataclass(frozen=True)
class LoadSettings:
    """Runtime settings for load-test behavior."""

    identifier: str
    password: str
    max_failure_rate_pct: float


SETTINGS = LoadSettings(
    identifier=os.environ.get("AUTH_LOAD_IDENTIFIER", "loadtest"),
    password=os.environ.get("AUTH_LOAD_PASSWORD", "Password123!"),
    max_failure_rate_pct=_env_float("AUTH_LOAD_MAX_FAILURE_RATE_PCT", 0.1),
)


def _token_data(payload: dict[str, object]) -> dict[str, object] | None:
    """Return the envelope's data when it carries both opaque tokens."""
    data = payload.get("data")
    if not payload.get("success") or not isinstance(data, dict):
        return None
    if not data.get("access_token") or not data.get("refresh_token"):
        return None
    return data


class LoginFlowUser(HttpUser):
    """Sustained login followed by a profile read with the issued cookie."""

    wait_time = between(0.05, 0.2)
    weight = 1

    @task
    def login_and_me(self) -> None:
        """Log in, then resolve the session through /me."""
        self.client.cookies.clear()
        with self.client.post(
            "/api/auth/login",
            json={"identifier": SETTINGS.identifier, "password": SETTINGS.password},
            name="POST /api/auth/login",
            catch_response=True,
        ) as response:
            if response.status_code != 200 or _token_data(response.json()) is None:
                response.failure(f"unexpected login status={response.status_code}")
                return
            response.success()

        with self.client.get(
            "/api/auth/me", name="GET /api/auth/me", catch_response=True
        ) as response:
            if response.status_code == 200:
                response.success()
            else:
                response.failure(f"unexpected me status={response.status_code}")


class RefreshFlowUser(HttpUser):
    """Sustained refresh rotation using the token from the previous response body."""

    wait_time = between(0.05, 0.2)
    weight = 2

    def __init__(self, environment) -> None:
        super().__init__(environment)
        self._refresh_token: str | None = None

    def on_start(self) -> None:
        """Authenticate once to bootstrap refresh token for this virtual user."""
        response = self.client.post(
            "/api/auth/login",
            json={"identifier": SETTINGS.identifier, "password": SETTINGS.password},
            name="POST /api/auth/login [bootstrap]",
        )
        if response.status_code != 200:
            print(f"[loadtest] refresh bootstrap failed with status={response.status_code}")
            return
        data = _token_data(response.json())
        self._refresh_token = str(data["refresh_token"]) if data else None

    @task
    def refresh(self) -> None:
        """Rotate refresh token repeatedly using current token state."""
        if not self._refresh_token:
            self.on_start()
            if not self._refresh_token:
                return

        with self.client.post(
            "/api/auth/refresh",
            json={"refresh_token": self._refresh_token},
            name="POST /api/auth/refresh",
            catch_response=True,
        ) as response:
            data = _token_data(response.json()) if response.status_code == 200 else None
            if data is not None:
                self._refresh_token = str(data["refresh_token"])
                response.success()
                return

            # The old token is gone after any rotation attempt; log in again next round.
            self._refresh_token = None
            response.failure(f"unexpected status={response.status_code}")


@events.quitting.add_listener
def _on_quitting(environment, **_kwargs) -> None:
    """Fail the run when the error rate exceeds the configured threshold."""
    failure_rate_pct = environment.stats.total.fail_ratio * 100.0
    if SETTINGS.max_failure_rate_pct >= 0 and failure_rate_pct > SETTINGS.max_failure_rate_pct:
        print(
            f"[loadtest] failure rate {failure_rate_pct:.3f}% exceeded "
            f"max {SETTINGS.max_failure_rate_pct:.3f}%"
        )
        environment.process_exit_code = 1
