import asyncio
import io
import json
import sys
import zipfile
from typing import Any, Callable

import httpx
import pytest

from packshift.app import settings as settings_module
from packshift.http import client as http_client



def pytest_configure(config: pytest.Config) -> None:
    if sys.flags.optimize:
        raise RuntimeError("Assertions are disabled (optimize > 0)")



@pytest.fixture(autouse=True)
def isolated_settings(tmp_path, monkeypatch):
    """Defaults only: no user settings file leaks into a test."""
    monkeypatch.setenv("PACKSHIFT_SETTINGS", str(tmp_path / "no-such-settings.json5"))
    settings_module.loadSettings.cache_clear()
    yield
    settings_module.loadSettings.cache_clear()



@pytest.fixture
def no_sleep(monkeypatch) -> list[float]:
    """Records asyncio.sleep delays in the HTTP client instead of sleeping."""
    calls: list[float] = []

    async def fake_sleep(delay: float) -> None:
        calls.append(delay)

    monkeypatch.setattr(http_client.asyncio, "sleep", fake_sleep)
    return calls



def install_transport(monkeypatch: pytest.MonkeyPatch, handler: Callable[[httpx.Request], httpx.Response]):
    transport = httpx.MockTransport(handler)
    original_async_client = http_client.httpx.AsyncClient

    class _PatchedAsyncClient:
        """Wrap httpx.AsyncClient so the transport can be injected."""

        def __init__(self, *args, **kwargs):
            kwargs = dict(kwargs)
            kwargs["transport"] = transport
            kwargs["http2"] = False
            self._client = original_async_client(*args, **kwargs)

        async def __aenter__(self):
            return await self._client.__aenter__()

        async def __aexit__(self, exc_type, exc, tb):
            return await self._client.__aexit__(exc_type, exc, tb)

    monkeypatch.setattr(http_client.httpx, "AsyncClient", _PatchedAsyncClient)
    return transport



@pytest.fixture
def mock_http(monkeypatch):
    """`mock_http(handler)` routes every outbound request to `handler`."""
    def install(handler: Callable[[httpx.Request], httpx.Response]):
        return install_transport(monkeypatch, handler)
    return install



# ----------------------------------------
# Pack archives
# ----------------------------------------

def sha1_for(n: int) -> str:
    return f"{n:040x}"



def sha512_for(n: int) -> str:
    return f"{n:0128x}"



def file_entry(path: str, n: int, **extra: Any) -> dict[str, Any]:
    entry = {
        "path": path,
        "hashes": {"sha1": sha1_for(n), "sha512": sha512_for(n)},
        "env": {"client": "required", "server": "optional"},
        "downloads": [f"https://cdn.example/{n}.bin"],
        "fileSize": 100 + n,
    }
    entry.update(extra)
    return entry



def make_pack_bytes(
    files: list[dict[str, Any]] | None = None,
    *,
    name: str = "Test Pack",
    dependencies: dict[str, str] | None = None,
    overrides: dict[str, bytes] | None = None,
    index: Any = None,
    with_index: bool = True,
) -> bytes:
    buffer = io.BytesIO()
    with zipfile.ZipFile(buffer, "w") as archive:
        if with_index:
            if index is None:
                index = {
                    "formatVersion": 1,
                    "game": "minecraft",
                    "versionId": "1.0.0",
                    "name": name,
                    "dependencies": dependencies if dependencies is not None else {"minecraft": "1.20.1", "fabric-loader": "0.15.0"},
                    "files": files or [],
                }
            text = index if isinstance(index, str) else json.dumps(index)
            archive.writestr("modrinth.index.json", text)
        for member, content in (overrides or {}).items():
            archive.writestr(member, content)
    return buffer.getvalue()



# ----------------------------------------
# Registry records
# ----------------------------------------

def version_record(
    project_id: str,
    number: str,
    *,
    version_type: str = "release",
    published: str = "2024-01-01T00:00:00Z",
    n: int = 900,
    complete: bool = True,
    name: str | None = None,
) -> dict[str, Any]:
    file_info: dict[str, Any] = {
        "url": f"https://cdn.modrinth.com/data/{project_id}/{number}.jar",
        "filename": f"{project_id}-{number}.jar",
        "hashes": {"sha1": sha1_for(n), "sha512": sha512_for(n)},
        "size": 1000 + n,
        "primary": True,
    }
    if not complete:
        file_info["hashes"] = {"sha1": sha1_for(n)}
    return {
        "id": f"v-{project_id}-{number}",
        "project_id": project_id,
        "version_number": number,
        "version_type": version_type,
        "date_published": published,
        "name": name or f"{project_id} {number}",
        "files": [file_info],
    }



class FakeRegistry:
    """
    In-memory registry.

    `versions` maps projectId -> list of version records, or an exception
    instance to raise. `delays` maps projectId -> seconds to await first.
    """

    def __init__(
        self,
        *,
        hash_answer: dict[str, Any] | Exception | None = None,
        projects: list[dict[str, Any]] | Exception | None = None,
        versions: dict[str, Any] | None = None,
        delays: dict[str, float] | None = None,
    ) -> None:
        self.hash_answer = hash_answer if hash_answer is not None else {}
        self.projects = projects if projects is not None else []
        self.versions = versions or {}
        self.delays = delays or {}
        self.hash_calls: list[list[str]] = []
        self.project_calls: list[list[str]] = []
        self.version_calls: list[tuple[str, str, str]] = []
        self.search_calls: list[str] = []
        self.search_hits: list[dict[str, Any]] = []

    async def versionsFromHashes(self, hashes, *, algorithm: str = "sha1"):
        self.hash_calls.append(list(hashes))
        if isinstance(self.hash_answer, Exception):
            raise self.hash_answer
        return self.hash_answer

    async def getProjects(self, projectIds):
        self.project_calls.append(list(projectIds))
        if isinstance(self.projects, Exception):
            raise self.projects
        return self.projects

    async def listProjectVersions(self, projectId, *, gameVersion, loader, limit=None):
        self.version_calls.append((projectId, gameVersion, loader))
        delay = self.delays.get(projectId)
        if delay:
            await asyncio.sleep(delay)
        answer = self.versions.get(projectId, [])
        if isinstance(answer, Exception):
            raise answer
        return answer[:limit] if limit else answer

    async def searchProjects(self, query, *, limit: int = 10):
        self.search_calls.append(query)
        return self.search_hits[:limit]
