"""pytest fixtures for modelsmith tests.

Provides:
- settings: Test settings with zero poll/settle delays
- fake_rodin: Scripted in-memory Rodin API (and file CDN) behind httpx.MockTransport
- http_client / rodin_client: Clients wired to the fake
- app / api_client: FastAPI app with lifespan running, plus an ASGI test client
"""

import json
import os

os.environ.setdefault("APP_ENV", "test")

from typing import Any, AsyncGenerator  # noqa: E402

import httpx  # noqa: E402
import pytest  # noqa: E402
import pytest_asyncio  # noqa: E402
from fastapi import FastAPI  # noqa: E402

from modelsmith.app import create_app, lifespan  # noqa: E402
from modelsmith.core.config import Settings  # noqa: E402
from modelsmith.services.rodin.rodin_client import RodinClient  # noqa: E402

RODIN_BASE_URL = "https://rodin.test/api/v2"
APP_BASE_URL = "http://test"
GLB_URL = "https://cdn.test/files/model.glb"
GLB_BYTES = b"glTF\x02\x00\x00\x00" + b"\x00" * 64


def status_body(*states: str, prefix: str = "job", errors: dict[int, str] | None = None) -> dict:
    """Build a status response body with one subtask per state."""
    errors = errors or {}
    jobs = []
    for index, state in enumerate(states):
        job: dict[str, Any] = {"uuid": f"{prefix}-{index}", "status": state}
        if index in errors:
            job["error"] = errors[index]
        jobs.append(job)
    return {"jobs": jobs}


def listing_body(*files: tuple[str, str], error: str = "OK") -> dict:
    """Build a download listing body from (name, url) pairs."""
    return {"error": error, "list": [{"name": name, "url": url} for name, url in files]}


class FakeRodin:
    """Scripted Rodin API.

    - Submissions return the queued handles in order (the last one repeats).
    - Status scripts are keyed by subscription key; each poll consumes one
      entry and the last entry repeats forever.
    - Entries may be dicts (200 JSON), httpx.Response objects or exceptions.
    - Files are (content, content_type) pairs or exceptions, served on GET and HEAD.
    - Requests to the app host are forwarded to the ASGI app, so the relay
      HEAD probe reaches the real relay route.
    """

    def __init__(self) -> None:
        self.submissions: list[Any] = [
            {"uuid": "task-1", "jobs": {"uuids": ["job-0"], "subscription_key": "sub-1"}}
        ]
        self.status_scripts: dict[str, list[Any]] = {"sub-1": [status_body("Done")]}
        self.listings: dict[str, Any] = {"task-1": listing_body(("model.glb", GLB_URL))}
        self.files: dict[str, Any] = {GLB_URL: (GLB_BYTES, "model/gltf-binary")}
        self.requests: list[httpx.Request] = []
        self.app: FastAPI | None = None

    def requests_to(self, path_suffix: str) -> list[httpx.Request]:
        return [r for r in self.requests if r.url.path.endswith(path_suffix)]

    @staticmethod
    def _next(script: list[Any]) -> Any:
        return script.pop(0) if len(script) > 1 else script[0]

    @staticmethod
    def _respond(entry: Any) -> httpx.Response:
        if isinstance(entry, Exception):
            raise entry
        if isinstance(entry, httpx.Response):
            return entry
        return httpx.Response(200, json=entry)

    async def __call__(self, request: httpx.Request) -> httpx.Response:
        await request.aread()
        self.requests.append(request)
        url = str(request.url)

        if request.url.host == "test" and self.app is not None:
            return await httpx.ASGITransport(app=self.app).handle_async_request(request)

        if url.startswith(RODIN_BASE_URL):
            path = request.url.path.rsplit("/", 1)[-1]
            if path == "rodin":
                return self._respond(self._next(self.submissions))
            if path == "status":
                body = _json(request.content)
                script = self.status_scripts.get(body.get("subscription_key"), [])
                if not script:
                    return httpx.Response(404, json={"error": "unknown subscription key"})
                return self._respond(self._next(script))
            if path == "download":
                body = _json(request.content)
                entry = self.listings.get(body.get("task_uuid"))
                if entry is None:
                    return httpx.Response(404, json={"error": "unknown task"})
                return self._respond(entry)

        base_url = url.split("?", 1)[0]
        if base_url in self.files:
            entry = self.files[base_url]
            if isinstance(entry, Exception):
                raise entry
            content, content_type = entry
            headers = {"content-type": content_type, "content-length": str(len(content))}
            if request.method == "HEAD":
                return httpx.Response(200, headers=headers)
            return httpx.Response(200, headers=headers, content=content)

        return httpx.Response(404, text="Not Found")


def _json(content: bytes) -> dict:
    try:
        body = json.loads(content or b"{}")
    except ValueError:
        return {}
    return body if isinstance(body, dict) else {}


@pytest.fixture
def settings() -> Settings:
    """Test settings: fake endpoints, no delays."""
    return Settings(
        APP_ENV="test",
        RODIN_API_KEY="test-key",
        RODIN_BASE_URL=RODIN_BASE_URL,
        PUBLIC_BASE_URL=APP_BASE_URL,
        POLL_INTERVAL_SECONDS=0,
        ARTIFACT_SETTLE_SECONDS=0,
        MAX_IMAGE_BYTES=1024,
    )


@pytest.fixture
def fake_rodin() -> FakeRodin:
    return FakeRodin()


@pytest_asyncio.fixture
async def http_client(fake_rodin: FakeRodin) -> AsyncGenerator[httpx.AsyncClient, None]:
    async with httpx.AsyncClient(transport=httpx.MockTransport(fake_rodin)) as client:
        yield client


@pytest.fixture
def rodin_client(http_client: httpx.AsyncClient) -> RodinClient:
    return RodinClient(http_client=http_client, api_key="test-key", base_url=RODIN_BASE_URL)


@pytest_asyncio.fixture
async def app(settings: Settings, fake_rodin: FakeRodin) -> AsyncGenerator[FastAPI, None]:
    """FastAPI app with its lifespan running and outbound HTTP routed to the fake."""
    application = create_app(settings)
    application.state.http_transport = httpx.MockTransport(fake_rodin)
    fake_rodin.app = application
    async with lifespan(application):
        yield application


@pytest_asyncio.fixture
async def api_client(app: FastAPI) -> AsyncGenerator[httpx.AsyncClient, None]:
    async with httpx.AsyncClient(
        transport=httpx.ASGITransport(app=app), base_url=APP_BASE_URL
    ) as client:
        yield client
