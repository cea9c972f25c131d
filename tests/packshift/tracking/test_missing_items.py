# tests/packshift/tracking/test_missing_items.py
import json5
import pytest

from conftest import FakeRegistry, version_record
from packshift.core.errors import RegistryError
from packshift.resolve.types import ProjectCategory, ResolutionRow
from packshift.tracking import missing_items as missing_module
from packshift.tracking.missing_items import (
    STORE_VERSION,
    MissingItemsStore,
    defaultLoaderForCategory,
    itemId,
)


@pytest.fixture(autouse=True)
def _no_delay(monkeypatch):
    delays: list[float] = []

    async def fake_sleep(delay: float) -> None:
        delays.append(delay)

    monkeypatch.setattr(missing_module.asyncio, "sleep", fake_sleep)
    return delays


@pytest.fixture
def store_path(tmp_path):
    return tmp_path / "state" / "missing-items.json5"


def _row(project_id: str, name: str, *, available: bool = False, category=ProjectCategory.MOD) -> ResolutionRow:
    return ResolutionRow(
        projectId=project_id,
        projectUrl="",
        category=category,
        name=name,
        slug=None,
        currentVersionNumber="1",
        currentGameVersion="1.20.1",
        targetLoader="fabric" if category is ProjectCategory.MOD else "minecraft",
        targetGameVersion="1.21",
        available=available,
        chosen=None,
        source="none",
    )


def test_itemId_and_default_loaders():
    assert itemId("mod", "Sodium Extra!", "1.21") == "mod-Sodium-Extra--1-21"
    assert defaultLoaderForCategory("mod") == "fabric"
    assert defaultLoaderForCategory("shaderpack") == "iris"
    assert defaultLoaderForCategory("resourcepack") == "minecraft"


@pytest.mark.asyncio
async def test_missing_or_unreadable_store_loads_empty(store_path):
    store = MissingItemsStore(store_path)
    assert (await store.load()).items == []

    store_path.parent.mkdir(parents=True)
    store_path.write_text("{ this is not json5", encoding="utf-8")
    document = await store.load()
    assert document.version == STORE_VERSION
    assert document.items == []


@pytest.mark.asyncio
async def test_addItem_merges_pack_names(store_path):
    store = MissingItemsStore(store_path)

    first = await store.addItem("Sodium", "mod", "1.21", "Pack A", projectId="AANobbMI")
    again = await store.addItem("Sodium", "mod", "1.21", "Pack B", projectId="AANobbMI")
    await store.addItem("Sodium", "mod", "1.21", "Pack B", projectId="AANobbMI")

    document = await store.load()
    assert len(document.items) == 1
    assert first.id == again.id == "mod-Sodium-1-21"
    assert document.items[0].packs == ["Pack A", "Pack B"]
    assert document.items[0].loader == "fabric"

    raw = json5.loads(store_path.read_text(encoding="utf-8"))
    assert raw["version"] == STORE_VERSION
    assert raw["items"][0]["projectId"] == "AANobbMI"


@pytest.mark.asyncio
async def test_removeItemFromPack_drops_item_when_unreferenced(store_path):
    store = MissingItemsStore(store_path)
    item = await store.addItem("Iris", "mod", "1.21", "Pack A")
    await store.addItem("Iris", "mod", "1.21", "Pack B")

    await store.removeItemFromPack(item.id, "Pack A")
    assert (await store.load()).items[0].packs == ["Pack B"]

    await store.removeItemFromPack(item.id, "Pack B")
    assert (await store.load()).items == []


@pytest.mark.asyncio
async def test_removeItem_updateStatus_and_clear(store_path):
    store = MissingItemsStore(store_path)
    keep = await store.addItem("Keep", "mod", "1.21", "P")
    drop = await store.addItem("Drop", "mod", "1.21", "P")

    assert await store.removeItem(drop.id) is True
    assert await store.removeItem("nope") is False

    await store.updateStatus(keep.id, True, lastChecked="2024-01-01T00:00:00+00:00")
    (item,) = (await store.load()).items
    assert item.found is True
    assert item.lastChecked == "2024-01-01T00:00:00+00:00"

    store.clear()
    assert (await store.load()).items == []


@pytest.mark.asyncio
async def test_captureMissing_counts_new_and_updated(store_path):
    store = MissingItemsStore(store_path)
    rows = [
        _row("AANobbMI", "Sodium"),
        _row("FAITH", "Faithful", category=ProjectCategory.RESOURCE_PACK),
        _row("OK", "Available", available=True),
    ]

    assert await store.captureMissing(rows, "Pack A") == (2, 0)
    assert await store.captureMissing(rows, "Pack B") == (0, 2)
    assert await store.captureMissing(rows, "Pack B") == (0, 0)

    document = await store.load()
    faithful = document.find(itemId("resourcepack", "Faithful", "1.21"))
    assert faithful is not None
    assert faithful.loader == "minecraft"
    assert faithful.projectId == "FAITH"
    assert faithful.packs == ["Pack A", "Pack B"]


@pytest.mark.asyncio
async def test_checkForUpdates_marks_found_items(store_path, _no_delay):
    registry = FakeRegistry(versions={
        "AANobbMI": [version_record("AANobbMI", "0.6.0")],
        "FAITH": [],
        "BROKEN": RegistryError("HTTP 500", status=500),
    })
    store = MissingItemsStore(store_path, registry)
    await store.addItem("Sodium", "mod", "1.21", "P", projectId="AANobbMI", loader="fabric")
    await store.addItem("Faithful", "resourcepack", "1.21", "P", projectId="FAITH")
    await store.addItem("Broken", "mod", "1.21", "P", projectId="BROKEN")
    await store.addItem("Nameless", "mod", "1.21", "P")

    found = await store.checkForUpdates()

    assert [item.name for item in found] == ["Sodium"]
    assert ("FAITH", "1.21", "minecraft") in registry.version_calls
    assert len(registry.version_calls) == 3
    assert _no_delay == [0.1, 0.1, 0.1]

    by_name = {item.name: item for item in (await store.load()).items}
    assert by_name["Sodium"].found is True
    assert by_name["Sodium"].lastChecked is not None
    assert by_name["Broken"].found is False
    assert by_name["Nameless"].lastChecked is None


@pytest.mark.asyncio
async def test_checkForUpdates_needs_registry(store_path):
    with pytest.raises(RuntimeError):
        await MissingItemsStore(store_path).checkForUpdates()


@pytest.mark.asyncio
async def test_legacy_documents_are_upgraded_and_saved(store_path):
    store_path.parent.mkdir(parents=True)
    store_path.write_text(json5.dumps({
        "version": 1,
        "items": [
            # v2: project id but no loader
            {"id": "shaderpack-BSL-1-21", "name": "BSL", "category": "shaderpack",
             "targetMcVersion": "1.21", "originalModpack": "Pack A, Pack B", "projectId": "BSL"},
            # v1: name only, resolvable through search
            {"id": "mod-Lithium-1-21", "name": "Lithium", "category": "mod",
             "targetMcVersion": "1.21", "originalModpack": "Pack A"},
            # v1: name only, search finds nothing
            {"id": "mod-Ghost-1-21", "name": "Ghost", "category": "mod",
             "targetMcVersion": "1.21", "originalModpack": "Pack C"},
        ],
    }), encoding="utf-8")
    registry = FakeRegistry(versions={"gvQqBUqZ": [version_record("gvQqBUqZ", "0.11")]})
    registry.search_hits = [
        {"title": "Lithium Fabric Extras", "project_id": "unrelatedHit"},
        {"title": "Lithium", "project_id": "gvQqBUqZ"},
    ]

    document = await MissingItemsStore(store_path, registry).load()

    assert document.version == STORE_VERSION
    assert [item.name for item in document.items] == ["BSL", "Lithium"]
    bsl, lithium = document.items
    assert bsl.loader == "iris"
    assert bsl.packs == ["Pack A", "Pack B"]
    assert bsl.targetGameVersion == "1.21"
    assert lithium.projectId == "gvQqBUqZ"
    assert lithium.loader == "fabric"
    assert registry.search_calls == ["Lithium", "Ghost"]
    # validation probe used the configured game version
    assert ("gvQqBUqZ", "1.20.1", "fabric") in registry.version_calls

    saved = json5.loads(store_path.read_text(encoding="utf-8"))
    assert saved["version"] == STORE_VERSION
    assert len(saved["items"]) == 2
