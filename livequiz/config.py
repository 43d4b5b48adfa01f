"""Service locations and client timing.

Values come from the environment so both front-ends can be pointed at a
different deployment without code changes:

    LIVEQUIZ_API_URL      auth + builder service   (default http://localhost:8080)
    LIVEQUIZ_AUTH_URL     auth service override
    LIVEQUIZ_BUILDER_URL  builder service override
    LIVEQUIZ_VIEWER_URL   viewer/session service    (default http://localhost:8081)
    LIVEQUIZ_TIMEOUT      per-request timeout in seconds
"""
from __future__ import annotations

import os
from dataclasses import dataclass
from typing import Mapping

DEFAULT_API_URL = "http://localhost:8080"
DEFAULT_VIEWER_URL = "http://localhost:8081"


@dataclass
class ClientConfig:
    auth_url: str = DEFAULT_API_URL
    builder_url: str = DEFAULT_API_URL
    viewer_url: str = DEFAULT_VIEWER_URL
    request_timeout: float = 10.0
    # poll cadence: slow while waiting for the host to start, fast during play
    start_poll_interval: float = 2.0
    live_poll_interval: float = 1.0
    minimum_award_fraction: float = 0.1

    @classmethod
    def from_env(cls, env: Mapping[str, str] | None = None) -> "ClientConfig":
        env = os.environ if env is None else env
        api_url = env.get("LIVEQUIZ_API_URL", DEFAULT_API_URL)
        return cls(
            auth_url=env.get("LIVEQUIZ_AUTH_URL", api_url),
            builder_url=env.get("LIVEQUIZ_BUILDER_URL", api_url),
            viewer_url=env.get("LIVEQUIZ_VIEWER_URL", DEFAULT_VIEWER_URL),
            request_timeout=float(env.get("LIVEQUIZ_TIMEOUT", 10.0)),
        )

    def with_overrides(self, *, api_url: str | None = None,
                       viewer_url: str | None = None) -> "ClientConfig":
        """Apply CLI overrides on top of the environment values."""
        if api_url:
            self.auth_url = api_url
            self.builder_url = api_url
        if viewer_url:
            self.viewer_url = viewer_url
        return self
