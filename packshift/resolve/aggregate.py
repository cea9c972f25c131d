# packshift/resolve/aggregate.py
from __future__ import annotations
import logging
from typing import Any, Iterable, Mapping, Sequence

from packshift.app.settings import settings
from packshift.manifest.models import ManifestEntry
from packshift.resolve.types import CanonicalProject, ProjectCategory

logger = logging.getLogger(__name__)

__all__ = ["CategoryRoot", "defaultCategoryRoots", "classifyPath", "aggregateProjects"]

CategoryRoot = tuple[str, ProjectCategory]



def defaultCategoryRoots() -> list[CategoryRoot]:
    roots: list[CategoryRoot] = []
    for raw in settings("resolve.categoryRoots", []) or []:
        if not isinstance(raw, Mapping):
            continue
        prefix = raw.get("prefix")
        try:
            category = ProjectCategory(raw.get("category"))
        except ValueError:
            logger.warning("Ignoring category root with unknown category %r", raw.get("category"))
            continue
        if isinstance(prefix, str) and prefix:
            roots.append((prefix, category))
    return roots



def classifyPath(path: str, roots: Sequence[CategoryRoot]) -> ProjectCategory:
    """Case-sensitive prefix match, first root wins, default MOD."""
    for prefix, category in roots:
        if path.startswith(prefix):
            return category
    return ProjectCategory.MOD



def aggregateProjects(
    versions: Mapping[str, Mapping[str, Any]],
    hashIndex: Mapping[str, ManifestEntry],
    *,
    hashOrder: Iterable[str] | None = None,
    categoryRoots: Sequence[CategoryRoot] | None = None,
) -> list[CanonicalProject]:
    """
    Collapse hash -> version results into one CanonicalProject per project id.

    Hashes are visited in `hashOrder` (manifest order) when given, else in
    mapping order; the first hash seen for a project becomes its
    representative. The outcome is a partition: one project per identity.
    """
    roots = defaultCategoryRoots() if categoryRoots is None else list(categoryRoots)
    order = list(hashOrder) if hashOrder is not None else list(versions.keys())

    projects: dict[str, CanonicalProject] = {}
    for sha in order:
        version = versions.get(sha)
        if not version:
            continue
        projectId = version.get("project_id")
        if not isinstance(projectId, str) or not projectId or projectId in projects:
            continue
        entry = hashIndex.get(sha)
        if entry is None:
            logger.debug("Hash %s resolved to %s but is not in the pack index", sha, projectId)
            continue
        projects[projectId] = CanonicalProject(
            projectId=projectId,
            category=classifyPath(entry.path, roots),
            representativeEntry=entry,
            representativeHash=sha,
            representativeVersion=dict(version),
        )

    logger.info("Collapsed %d resolved hash(es) into %d project(s)", len(versions), len(projects))
    return list(projects.values())
