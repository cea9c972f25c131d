# packshift/tracking/missing_items.py
from __future__ import annotations
import asyncio
import logging
import os
import re
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Iterable, Protocol

import httpx
import json5
from pydantic import BaseModel, ConfigDict, Field, ValidationError

from packshift.app.settings import settings
from packshift.core.errors import RegistryError
from packshift.http.client import HTTPError
from packshift.resolve.types import ResolutionRow

logger = logging.getLogger(__name__)

__all__ = [
    "STORE_VERSION",
    "MissingItem",
    "MissingItemsDocument",
    "MissingItemsStore",
    "defaultLoaderForCategory",
    "itemId",
]

# ------------------------------------------------------------------ #
# Document layout
# ------------------------------------------------------------------ #
# {
#   version: 3,
#   items: [{ id, name, category, targetGameVersion, packs: [...],
#             projectId, loader, dateAdded, lastChecked, found }],
# }
#
# Older documents:
# - v1 items carry only name/category/targetMcVersion/originalModpack.
#   The project id is recovered through a name search; misses are dropped.
# - v2 items have a projectId but no loader.
# - v1/v2 list packs as one ", "-joined originalModpack string.
#

STORE_VERSION = 3

_ID_STRIP_RE = re.compile(r"[^a-zA-Z0-9\-]")



class TrackingRegistry(Protocol):
    async def searchProjects(self, query: str, *, limit: int = 10) -> list[dict[str, Any]]:
        ...

    async def listProjectVersions(
        self, projectId: str, *, gameVersion: str, loader: str, limit: int | None = None,
    ) -> list[dict[str, Any]]:
        ...



def defaultLoaderForCategory(category: str) -> str:
    if category == "mod":
        return "fabric"
    if category == "shaderpack":
        return "iris"
    return "minecraft"



def itemId(category: str, name: str, targetGameVersion: str) -> str:
    return _ID_STRIP_RE.sub("-", f"{category}-{name}-{targetGameVersion}")



def _now() -> str:
    return datetime.now(timezone.utc).isoformat()



def _splitPackNames(raw: Any) -> list[str]:
    if isinstance(raw, list):
        return [str(x).strip() for x in raw if str(x).strip()]
    if isinstance(raw, str) and raw:
        return [part.strip() for part in raw.split(", ") if part.strip()]
    return []



class MissingItem(BaseModel):
    model_config = ConfigDict(extra="ignore")

    id: str
    name: str
    category: str
    targetGameVersion: str
    packs: list[str] = Field(default_factory=list)
    projectId: str | None = None
    loader: str | None = None
    dateAdded: str = Field(default_factory=_now)
    lastChecked: str | None = None
    found: bool = False



class MissingItemsDocument(BaseModel):
    model_config = ConfigDict(extra="ignore")

    version: int = STORE_VERSION
    items: list[MissingItem] = Field(default_factory=list)

    def find(self, id: str) -> MissingItem | None:
        for item in self.items:
            if item.id == id:
                return item
        return None



# ------------------------------------------------------------------ #
# Store
# ------------------------------------------------------------------ #

class MissingItemsStore:
    """
    Persistent list of identities that had no build for some target version.

    Every mutating call reads the document (upgrading legacy layouts), applies
    the change and writes the file back.
    """

    def __init__(self, path: str | Path | None = None, registry: TrackingRegistry | None = None) -> None:
        rawPath = path if path is not None else settings("tracking.storePath", "~/.packshift/missing-items.json5")
        self.path = Path(rawPath).expanduser()
        self.registry = registry

    # ----- Persistence -----

    def _readRaw(self) -> dict[str, Any] | None:
        if not self.path.exists():
            return None
        try:
            data = json5.loads(self.path.read_text(encoding="utf-8"))
        except (OSError, ValueError) as err:
            logger.warning("Missing-items store '%s' is unreadable; starting empty: %s", self.path, err)
            return None
        if not isinstance(data, dict):
            logger.warning("Missing-items store '%s' is not an object; starting empty", self.path)
            return None
        return data

    async def load(self) -> MissingItemsDocument:
        raw = self._readRaw()
        if raw is None:
            return MissingItemsDocument()

        version = raw.get("version")
        if not isinstance(version, int) or version < STORE_VERSION:
            document = await self._upgrade(raw)
            self.save(document)
            return document

        try:
            return MissingItemsDocument.model_validate(raw)
        except ValidationError as err:
            logger.warning("Missing-items store '%s' is malformed; starting empty: %s", self.path, err)
            return MissingItemsDocument()

    def save(self, document: MissingItemsDocument) -> None:
        self.path.parent.mkdir(parents=True, exist_ok=True)
        out = json5.dumps(document.model_dump(mode="json"), indent=2, quote_keys=True, ensure_ascii=False)
        tmpPath = self.path.with_suffix(self.path.suffix + ".tmp")
        with open(tmpPath, "w", encoding="utf-8") as fl:
            fl.write(out)
            if not out.endswith("\n"):
                fl.write("\n")
        os.replace(tmpPath, self.path)
        logger.debug("Saved %d missing item(s) to '%s'", len(document.items), self.path)

    def clear(self) -> None:
        self.save(MissingItemsDocument())

    # ----- Upgrade -----

    async def _upgrade(self, raw: dict[str, Any]) -> MissingItemsDocument:
        legacyItems = raw.get("items") if isinstance(raw.get("items"), list) else []
        logger.info("Upgrading missing-items store from version %s to %d", raw.get("version"), STORE_VERSION)
        items: list[MissingItem] = []
        for legacy in legacyItems:
            if not isinstance(legacy, dict):
                continue
            name = str(legacy.get("name") or "")
            category = str(legacy.get("category") or "mod")
            target = str(legacy.get("targetGameVersion") or legacy.get("targetMcVersion") or "")
            projectId = legacy.get("projectId") or None
            if not projectId:
                projectId = await self._resolveProjectId(name, category)
                if projectId is None:
                    logger.warning("Could not resolve a project id for '%s'; dropping it", name)
                    continue
                logger.info("Resolved '%s' to project id %s", name, projectId)
            try:
                items.append(MissingItem(
                    id=str(legacy.get("id") or itemId(category, name, target)),
                    name=name,
                    category=category,
                    targetGameVersion=target,
                    packs=_splitPackNames(legacy.get("packs") or legacy.get("originalModpack")),
                    projectId=projectId,
                    loader=legacy.get("loader") or defaultLoaderForCategory(category),
                    dateAdded=legacy.get("dateAdded") or _now(),
                    lastChecked=legacy.get("lastChecked"),
                    found=bool(legacy.get("found", False)),
                ))
            except ValidationError as err:
                logger.warning("Dropping malformed missing item '%s': %s", name, err)
        logger.info("Upgraded %d item(s) to version %d", len(items), STORE_VERSION)
        return MissingItemsDocument(version=STORE_VERSION, items=items)

    async def _resolveProjectId(self, name: str, category: str) -> str | None:
        """First search hit whose title overlaps `name` and that has any build at all."""
        if self.registry is None or not name:
            return None
        loader = defaultLoaderForCategory(category)
        probeVersion = settings("tracking.probeGameVersion", "1.20.1")
        try:
            hits = await self.registry.searchProjects(name, limit=10)
        except (RegistryError, HTTPError, httpx.HTTPError) as err:
            logger.warning("Project search for '%s' failed: %s", name, err)
            return None
        needle = name.lower()
        for hit in hits:
            title = str(hit.get("title") or "").lower()
            projectId = hit.get("project_id")
            if not title or not isinstance(projectId, str):
                continue
            if needle not in title and title not in needle:
                continue
            try:
                versions = await self.registry.listProjectVersions(
                    projectId, gameVersion=probeVersion, loader=loader, limit=1,
                )
            except (RegistryError, HTTPError, httpx.HTTPError) as err:
                logger.warning("Validating project %s failed: %s", projectId, err)
                continue
            if versions:
                return projectId
        return None

    # ----- Items -----

    async def addItem(
        self,
        name: str,
        category: str,
        targetGameVersion: str,
        packName: str,
        *,
        projectId: str | None = None,
        loader: str | None = None,
    ) -> MissingItem:
        """Track an item, or add `packName` to the packs of the one already tracked."""
        document = await self.load()
        id = itemId(category, name, targetGameVersion)
        existing = document.find(id)
        if existing is not None:
            if packName not in existing.packs:
                existing.packs.append(packName)
                existing.dateAdded = _now()
                self.save(document)
            return existing

        item = MissingItem(
            id=id,
            name=name,
            category=category,
            targetGameVersion=targetGameVersion,
            packs=[packName],
            projectId=projectId,
            loader=loader or defaultLoaderForCategory(category),
        )
        document.items.append(item)
        self.save(document)
        return item

    async def removeItem(self, id: str) -> bool:
        document = await self.load()
        before = len(document.items)
        document.items = [item for item in document.items if item.id != id]
        self.save(document)
        return len(document.items) != before

    async def removeItemFromPack(self, id: str, packName: str) -> None:
        """Drop `packName` from an item; the item goes once no pack references it."""
        document = await self.load()
        item = document.find(id)
        if item is None:
            return
        item.packs = [p for p in item.packs if p != packName]
        if not item.packs:
            document.items = [i for i in document.items if i.id != id]
        self.save(document)

    async def updateStatus(self, id: str, found: bool, lastChecked: str | None = None) -> None:
        document = await self.load()
        item = document.find(id)
        if item is None:
            return
        item.found = found
        item.lastChecked = lastChecked or _now()
        self.save(document)

    async def captureMissing(self, rows: Iterable[ResolutionRow], packName: str) -> tuple[int, int]:
        """
        Track every unavailable row. Returns (new, updated): rows that started
        a new item and rows that only added `packName` to an existing one.
        """
        added = updated = 0
        for row in rows:
            if row.available:
                continue
            name = row.name or row.slug or "(unknown)"
            category = row.category.value
            existing = (await self.load()).find(itemId(category, name, row.targetGameVersion))
            if existing is None:
                added += 1
            elif packName not in existing.packs:
                updated += 1
            await self.addItem(
                name,
                category,
                row.targetGameVersion,
                packName,
                projectId=row.projectId,
                loader=row.targetLoader,
            )
        return added, updated

    async def checkForUpdates(self) -> list[MissingItem]:
        """
        Re-check each tracked item, one at a time with a short pause between
        lookups. Returns the items that now have a build.
        """
        if self.registry is None:
            raise RuntimeError("checkForUpdates needs a registry client")
        document = await self.load()
        delay = float(settings("tracking.checkDelayMs", 100)) / 1000.0
        foundItems: list[MissingItem] = []

        for num, item in enumerate(document.items, start=1):
            if not item.projectId:
                logger.warning("Skipping '%s': no project id", item.name)
                continue
            loader = item.loader or defaultLoaderForCategory(item.category)
            logger.info("Checking %d/%d: %s", num, len(document.items), item.name)
            try:
                versions = await self.registry.listProjectVersions(
                    item.projectId, gameVersion=item.targetGameVersion, loader=loader,
                )
                found = bool(versions)
            except (RegistryError, HTTPError, httpx.HTTPError) as err:
                logger.warning("Checking '%s' failed: %s", item.name, err)
                found = False
            item.found = found
            item.lastChecked = _now()
            if found:
                foundItems.append(item)
            if delay > 0:
                await asyncio.sleep(delay)

        self.save(document)
        return foundItems
