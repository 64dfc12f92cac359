import os
from collections.abc import Callable
from pathlib import Path

import httpx
import pytest

# Keep tests deterministic and offline-safe.
os.environ["OPENAI_API_KEY"] = "test-key"
os.environ["LOG_JSON"] = "false"

from chat_relay.config import Settings  # noqa: E402

UpstreamHandler = Callable[[httpx.Request], httpx.Response]


@pytest.fixture
def settings(tmp_path: Path) -> Settings:
    return Settings(
        openai_api_key="test-key",
        upstream_base_url="https://upstream.test/v1",
        upload_dir=tmp_path / "uploads",
        max_upload_bytes=1024,
    )


@pytest.fixture
def stub_upstream(monkeypatch):
    """Route every upstream call through ``handler`` and record the requests."""

    def _install(handler: UpstreamHandler) -> list[httpx.Request]:
        seen: list[httpx.Request] = []

        def _recording(request: httpx.Request) -> httpx.Response:
            seen.append(request)
            return handler(request)

        monkeypatch.setattr(
            "chat_relay.llm._build_client",
            lambda settings: httpx.AsyncClient(transport=httpx.MockTransport(_recording)),
        )
        return seen

    return _install
