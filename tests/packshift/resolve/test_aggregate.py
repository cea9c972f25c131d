# tests/packshift/resolve/test_aggregate.py
import itertools

from conftest import sha1_for
from packshift.manifest.models import FileHashes, ManifestEntry
from packshift.resolve.aggregate import aggregateProjects, classifyPath, defaultCategoryRoots
from packshift.resolve.types import ProjectCategory


def _entry(path: str, n: int) -> ManifestEntry:
    return ManifestEntry(path=path, hashes=FileHashes(sha1=sha1_for(n)))


def _fixture():
    entries = {
        sha1_for(1): _entry("mods/sodium.jar", 1),
        sha1_for(2): _entry("mods/sodium-extra-copy.jar", 2),
        sha1_for(3): _entry("resourcepacks/faithful.zip", 3),
        sha1_for(4): _entry("shaderpacks/bsl.zip", 4),
        sha1_for(5): _entry("mods/lithium.jar", 5),
    }
    versions = {
        sha1_for(1): {"project_id": "AANobbMI", "version_number": "0.5.0"},
        sha1_for(2): {"project_id": "AANobbMI", "version_number": "0.5.1"},
        sha1_for(3): {"project_id": "FAITH", "version_number": "1"},
        sha1_for(4): {"project_id": "BSL", "version_number": "8"},
        sha1_for(5): {"project_id": "gvQqBUqZ", "version_number": "0.11"},
    }
    return entries, versions


def test_classifyPath_uses_configured_roots():
    roots = defaultCategoryRoots()
    assert classifyPath("resourcepacks/a.zip", roots) is ProjectCategory.RESOURCE_PACK
    assert classifyPath("shaderpacks/a.zip", roots) is ProjectCategory.SHADER_PACK
    assert classifyPath("mods/a.jar", roots) is ProjectCategory.MOD
    # prefix match is case-sensitive
    assert classifyPath("ResourcePacks/a.zip", roots) is ProjectCategory.MOD


def test_first_hash_in_manifest_order_is_representative():
    entries, versions = _fixture()
    projects = aggregateProjects(versions, entries, hashOrder=list(entries))

    assert [p.projectId for p in projects] == ["AANobbMI", "FAITH", "BSL", "gvQqBUqZ"]
    sodium = projects[0]
    assert sodium.representativeHash == sha1_for(1)
    assert sodium.representativeEntry.path == "mods/sodium.jar"
    assert sodium.currentVersionNumber == "0.5.0"
    assert [p.category for p in projects] == [
        ProjectCategory.MOD,
        ProjectCategory.RESOURCE_PACK,
        ProjectCategory.SHADER_PACK,
        ProjectCategory.MOD,
    ]


def test_aggregation_is_permutation_invariant_and_duplicate_free():
    entries, versions = _fixture()
    expected = {"AANobbMI", "FAITH", "BSL", "gvQqBUqZ"}

    for order in itertools.permutations(list(entries)):
        projects = aggregateProjects(versions, entries, hashOrder=order)
        ids = [p.projectId for p in projects]
        assert len(ids) == len(set(ids))
        assert set(ids) == expected


def test_hashes_without_project_or_entry_are_skipped():
    entries, versions = _fixture()
    versions[sha1_for(9)] = {"project_id": "GHOST"}
    versions[sha1_for(5)] = {"version_number": "no-project"}

    projects = aggregateProjects(versions, entries)

    assert {p.projectId for p in projects} == {"AANobbMI", "FAITH", "BSL"}
