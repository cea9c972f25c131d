# tests/packshift/registry/test_modrinth_client.py
import json

import httpx
import pytest

from packshift.core.errors import RegistryError
from packshift.registry.modrinth import RegistryClient


def _client() -> RegistryClient:
    return RegistryClient(apiBase="https://api.test/", userAgent="packshift-tests")


@pytest.mark.asyncio
async def test_versionsFromHashes_posts_one_batch(mock_http):
    seen: list[httpx.Request] = []

    def handler(req: httpx.Request) -> httpx.Response:
        seen.append(req)
        return httpx.Response(200, json={"abc": {"project_id": "P"}})

    mock_http(handler)
    data = await _client().versionsFromHashes(["abc", "def"])

    assert data == {"abc": {"project_id": "P"}}
    (req,) = seen
    assert req.method == "POST"
    assert str(req.url) == "https://api.test/v2/version_files"
    assert json.loads(req.content) == {"hashes": ["abc", "def"], "algorithm": "sha1"}
    assert req.headers["User-Agent"] == "packshift-tests"


@pytest.mark.asyncio
async def test_versionsFromHashes_empty_input_skips_the_call(mock_http):
    def handler(req: httpx.Request) -> httpx.Response:
        raise AssertionError("no request expected")

    mock_http(handler)
    assert await _client().versionsFromHashes([]) == {}


@pytest.mark.asyncio
async def test_getProjects_sends_json_encoded_ids(mock_http):
    seen: list[httpx.Request] = []

    def handler(req: httpx.Request) -> httpx.Response:
        seen.append(req)
        return httpx.Response(200, json=[{"id": "A"}, "junk", {"id": "B"}])

    mock_http(handler)
    projects = await _client().getProjects(["A", "B"])

    assert projects == [{"id": "A"}, {"id": "B"}]
    assert seen[0].url.path == "/v2/projects"
    assert json.loads(seen[0].url.params["ids"]) == ["A", "B"]


@pytest.mark.asyncio
async def test_listProjectVersions_filters_by_game_version_and_loader(mock_http):
    seen: list[httpx.Request] = []

    def handler(req: httpx.Request) -> httpx.Response:
        seen.append(req)
        return httpx.Response(200, json=[{"version_number": "1.0"}])

    mock_http(handler)
    versions = await _client().listProjectVersions("AANobbMI", gameVersion="1.21", loader="fabric", limit=1)

    assert versions == [{"version_number": "1.0"}]
    params = seen[0].url.params
    assert seen[0].url.path == "/v2/project/AANobbMI/version"
    assert json.loads(params["game_versions"]) == ["1.21"]
    assert json.loads(params["loaders"]) == ["fabric"]
    assert params["limit"] == "1"


@pytest.mark.asyncio
async def test_searchProjects_returns_hits(mock_http):
    def handler(req: httpx.Request) -> httpx.Response:
        assert req.url.params["query"] == "sodium"
        return httpx.Response(200, json={"hits": [{"project_id": "AANobbMI", "title": "Sodium"}]})

    mock_http(handler)
    hits = await _client().searchProjects("sodium")

    assert hits == [{"project_id": "AANobbMI", "title": "Sodium"}]


@pytest.mark.asyncio
async def test_listGameVersions_keeps_releases_newest_first(mock_http):
    def handler(req: httpx.Request) -> httpx.Response:
        return httpx.Response(200, json=[
            {"version": "1.20.1", "version_type": "release"},
            {"version": "24w14a", "version_type": "snapshot"},
            {"version": "1.21", "version_type": "release"},
            {"version": "1.20.5-pre1", "version_type": "beta"},
            {"version": "1.20.4", "version_type": "release"},
            {"version": "1.21", "version_type": "release"},
        ])

    mock_http(handler)
    assert await _client().listGameVersions() == ["1.21", "1.20.4", "1.20.1"]


@pytest.mark.asyncio
async def test_non_success_status_raises_registry_error(mock_http):
    mock_http(lambda req: httpx.Response(404, json={"error": "not_found"}))

    with pytest.raises(RegistryError) as exc_info:
        await _client().listProjectVersions("nope", gameVersion="1.21", loader="fabric")
    assert exc_info.value.status == 404


@pytest.mark.asyncio
async def test_unexpected_payload_shape_raises_registry_error(mock_http):
    mock_http(lambda req: httpx.Response(200, json={"not": "a list"}))

    with pytest.raises(RegistryError):
        await _client().getProjects(["A"])
