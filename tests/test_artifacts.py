"""Tests for artifact selection and resolution.

The relay probe goes through the fake transport to the real relay route when
the ``app`` fixture is active; without it the probe gets a 404 and the
resolver falls back to the direct upstream URL.
"""

import pytest
from conftest import APP_BASE_URL, GLB_URL, listing_body

from modelsmith.core.cancellation import CancellationToken
from modelsmith.models.generation import ArtifactFile, JobHandle
from modelsmith.services.artifacts import ArtifactResolver, relay_url, select_artifact
from modelsmith.services.exceptions import (
    ArtifactListingError,
    ArtifactNotFoundError,
    NoArtifactsError,
    RunCancelled,
)

HANDLE = JobHandle(task_id="task-1", subscription_key="sub-1")
ENCODED_GLB_URL = "https%3A%2F%2Fcdn.test%2Ffiles%2Fmodel.glb"


@pytest.fixture
def resolver(rodin_client, http_client) -> ArtifactResolver:
    return ArtifactResolver(
        client=rodin_client,
        probe_client=http_client,
        relay_path="/api/relay",
        relay_probe_base=f"{APP_BASE_URL}/api/relay",
        settle_seconds=0,
    )


def files(*names: str) -> list[ArtifactFile]:
    return [ArtifactFile(name=name, remote_url=f"https://cdn.test/files/{name}") for name in names]


class TestSelectArtifact:
    def test_first_match_wins(self):
        chosen = select_artifact(files("preview.webp", "a.glb", "b.glb"), ".glb")
        assert chosen.name == "a.glb"

    def test_match_is_case_insensitive(self):
        chosen = select_artifact(files("preview.webp", "MODEL.GLB"), ".glb")
        assert chosen.name == "MODEL.GLB"

    def test_no_match_lists_available_names(self):
        with pytest.raises(ArtifactNotFoundError) as exc_info:
            select_artifact(files("preview.webp", "model.fbx"), ".glb")

        message = str(exc_info.value)
        assert "No GLB file found" in message
        assert "preview.webp" in message
        assert "model.fbx" in message
        assert exc_info.value.available == ["preview.webp", "model.fbx"]


def test_relay_url_encodes_remote_url():
    assert relay_url("/api/relay", GLB_URL) == f"/api/relay?url={ENCODED_GLB_URL}"


class TestResolve:
    @pytest.mark.asyncio
    async def test_relay_url_when_probe_succeeds(self, app, resolver, fake_rodin):
        fake_rodin.listings["task-1"] = listing_body(
            ("preview.webp", "https://cdn.test/files/preview.webp"),
            ("model.glb", GLB_URL),
        )

        resolved = await resolver.resolve(HANDLE, ".glb")

        assert resolved.via_relay is True
        assert resolved.file.name == "model.glb"
        assert resolved.model_url == f"/api/relay?url={ENCODED_GLB_URL}"
        assert resolved.download_url == GLB_URL
        probes = [r for r in fake_rodin.requests if r.method == "HEAD" and r.url.host == "test"]
        assert len(probes) == 1

    @pytest.mark.asyncio
    async def test_direct_url_when_probe_fails(self, resolver, fake_rodin):
        resolved = await resolver.resolve(HANDLE, ".glb")

        assert resolved.via_relay is False
        assert resolved.model_url == GLB_URL
        assert resolved.download_url == GLB_URL

    @pytest.mark.asyncio
    async def test_probe_upstream_missing_falls_back(self, app, resolver, fake_rodin):
        fake_rodin.files.clear()

        resolved = await resolver.resolve(HANDLE, ".glb")

        assert resolved.via_relay is False
        assert resolved.model_url == GLB_URL

    @pytest.mark.asyncio
    async def test_empty_listing(self, resolver, fake_rodin):
        fake_rodin.listings["task-1"] = listing_body()

        with pytest.raises(NoArtifactsError, match="No files available for download"):
            await resolver.resolve(HANDLE, ".glb")

    @pytest.mark.asyncio
    async def test_no_matching_extension(self, resolver, fake_rodin):
        fake_rodin.listings["task-1"] = listing_body(
            ("model.usdz", "https://cdn.test/files/model.usdz")
        )

        with pytest.raises(ArtifactNotFoundError, match="model.usdz"):
            await resolver.resolve(HANDLE, ".glb")

    @pytest.mark.asyncio
    async def test_other_target_extension(self, resolver, fake_rodin):
        fake_rodin.listings["task-1"] = listing_body(
            ("model.glb", GLB_URL),
            ("model.fbx", "https://cdn.test/files/model.fbx"),
        )

        resolved = await resolver.resolve(HANDLE, ".fbx")

        assert resolved.file.name == "model.fbx"

    @pytest.mark.asyncio
    async def test_listing_error(self, resolver, fake_rodin):
        fake_rodin.listings["task-1"] = listing_body(error="TASK_EXPIRED")

        with pytest.raises(ArtifactListingError):
            await resolver.resolve(HANDLE, ".glb")

    @pytest.mark.asyncio
    async def test_cancelled_during_settle_skips_listing(self, resolver, fake_rodin):
        token = CancellationToken()
        token.cancel()

        with pytest.raises(RunCancelled):
            await resolver.resolve(HANDLE, ".glb", token=token)

        assert fake_rodin.requests_to("/download") == []
