# packshift/cli.py
"""
packshift command line.

    packshift check PACK -g 1.21.1 -l fabric
    packshift build PACK -g 1.21.1 -l fabric -o out/
    packshift game-versions
    packshift missing list|check|capture|remove|clear
"""
from __future__ import annotations
import asyncio
import logging
import sys
import warnings
from pathlib import Path
from typing import Any

import click

from packshift import __version__
from packshift.core.errors import MissingManifestError, ParseError, RegistryError
from packshift.core.jsonutils import safeJsonDumps
from packshift.core.logging import configureLogging
from packshift.http.client import HTTPError
from packshift.manifest.loader import LoadedPack, loadPackArchive
from packshift.rebuild.rebuilder import rebuildManifest, writeArchive
from packshift.registry.modrinth import RegistryClient
from packshift.resolve.resolver import AnalysisResult, PackResolver
from packshift.tracking.missing_items import MissingItemsStore

logger = logging.getLogger(__name__)

LOADER_CHOICES = ("fabric", "quilt", "forge", "neoforge")



def _loadPack(path: str) -> LoadedPack:
    try:
        with warnings.catch_warnings():
            warnings.simplefilter("ignore")
            return loadPackArchive(path)
    except (ParseError, MissingManifestError) as err:
        raise click.ClickException(str(err)) from err



async def _analyze(pack: LoadedPack, gameVersion: str, loader: str) -> AnalysisResult:
    resolver = PackResolver(RegistryClient())

    def progress(done: int, total: int) -> None:
        click.echo(f"\r  {done}/{total}", nl=done == total, err=True)

    with warnings.catch_warnings():
        warnings.simplefilter("ignore")
        return await resolver.analyze(pack, gameVersion, loader, onProgress=progress)



def _printRows(result: AnalysisResult) -> None:
    for row in result.rows:
        mark = "ok " if row.available else "-- "
        target = row.targetVersionNumber if row.available else (row.failure or "no build")
        click.echo(f"  {mark}{row.name:32s} {row.currentVersionNumber:>16s} -> {target}  [{row.source}]")
    summary = result.summary()
    click.echo(
        f"{summary['available']}/{summary['total']} available for "
        f"{result.targetGameVersion} / {result.packLoader}"
    )
    for note in result.notes:
        click.echo(f"note: {note}")



def _store() -> MissingItemsStore:
    return MissingItemsStore(registry=RegistryClient())



# ------------------------------------------------------------------ #
# Commands
# ------------------------------------------------------------------ #

@click.group()
@click.version_option(version=__version__)
@click.option("-v", "--verbose", is_flag=True, help="Debug logging")
@click.option("--log-file", default=None, help="Also write JSON-lines logs here")
def main(verbose: bool, log_file: str | None) -> None:
    """packshift - move a Modrinth pack to another game version."""
    configureLogging(devMode=verbose or None, logFile=log_file)



@main.command()
@click.argument("pack", type=click.Path(exists=True, dir_okay=False))
@click.option("-g", "--game-version", required=True, help="Target game version, e.g. 1.21.1")
@click.option("-l", "--loader", type=click.Choice(LOADER_CHOICES), default="fabric", show_default=True)
@click.option("--json", "asJson", is_flag=True, help="Print rows as JSON")
def check(pack: str, game_version: str, loader: str, asJson: bool) -> None:
    """Check which projects of PACK have a build for the target."""
    loaded = _loadPack(pack)
    result = asyncio.run(_analyze(loaded, game_version, loader))
    if asJson:
        click.echo(safeJsonDumps(result, indent=2))
        return
    _printRows(result)



@main.command()
@click.argument("pack", type=click.Path(exists=True, dir_okay=False))
@click.option("-g", "--game-version", required=True, help="Target game version, e.g. 1.21.1")
@click.option("-l", "--loader", type=click.Choice(LOADER_CHOICES), default="fabric", show_default=True)
@click.option("-o", "--output", default=".", show_default=True, help="Output file or directory")
@click.option("--remember-missing", is_flag=True, help="Track unavailable projects in the missing-items store")
def build(pack: str, game_version: str, loader: str, output: str, remember_missing: bool) -> None:
    """Resolve PACK and write a rebuilt .mrpack."""
    loaded = _loadPack(pack)

    async def run() -> tuple[AnalysisResult, Path, Any]:
        result = await _analyze(loaded, game_version, loader)
        with warnings.catch_warnings():
            warnings.simplefilter("ignore")
            rebuilt = await rebuildManifest(
                loaded, result.rows, game_version, loader, projectEntries=result.projectEntries,
            )
        path = writeArchive(rebuilt, output)
        if remember_missing:
            await _store().captureMissing(result.rows, loaded.name)
        return result, path, rebuilt

    result, path, rebuilt = asyncio.run(run())
    _printRows(result)
    for item in rebuilt.excluded:
        click.echo(f"excluded: {item.name} ({item.reason})")
    for note in rebuilt.notes:
        click.echo(f"note: {note}")
    click.echo(f"Wrote {path} with {len(rebuilt.index.files)} file(s)")



@main.command(name="game-versions")
@click.option("--limit", type=int, default=20, show_default=True)
def gameVersions(limit: int) -> None:
    """List release game versions, newest first."""
    try:
        versions = asyncio.run(RegistryClient().listGameVersions())
    except (RegistryError, HTTPError) as err:
        raise click.ClickException(str(err)) from err
    for version in versions[:limit] if limit > 0 else versions:
        click.echo(version)



# ----- Missing items -----

@main.group()
def missing() -> None:
    """Projects that had no build for some target version."""



@missing.command(name="list")
def missingList() -> None:
    document = asyncio.run(_store().load())
    if not document.items:
        click.echo("No missing items tracked.")
        return
    for item in document.items:
        status = "found" if item.found else "missing"
        click.echo(f"  {item.id}  {item.name} [{item.targetGameVersion}] {status}  ({', '.join(item.packs)})")



@missing.command(name="check")
def missingCheck() -> None:
    """Re-check every tracked item against the registry."""
    found = asyncio.run(_store().checkForUpdates())
    if not found:
        click.echo("No updates found for missing items.")
        return
    for item in found:
        click.echo(f"found: {item.name} ({', '.join(item.packs) or 'Unknown'})")



@missing.command(name="capture")
@click.argument("pack", type=click.Path(exists=True, dir_okay=False))
@click.option("-g", "--game-version", required=True)
@click.option("-l", "--loader", type=click.Choice(LOADER_CHOICES), default="fabric", show_default=True)
def missingCapture(pack: str, game_version: str, loader: str) -> None:
    """Check PACK and remember every project without a build."""
    loaded = _loadPack(pack)

    async def run() -> tuple[int, int]:
        result = await _analyze(loaded, game_version, loader)
        return await _store().captureMissing(result.rows, loaded.name)

    added, updated = asyncio.run(run())
    click.echo(f"Added {added} new item(s), updated {updated} existing item(s) with '{loaded.name}'")



@missing.command(name="remove")
@click.argument("item_id")
@click.option("--pack", "packName", default=None, help="Only drop this pack from the item")
def missingRemove(item_id: str, packName: str | None) -> None:
    store = _store()
    if packName:
        asyncio.run(store.removeItemFromPack(item_id, packName))
        click.echo(f"Removed '{packName}' from {item_id}")
        return
    if not asyncio.run(store.removeItem(item_id)):
        click.echo(f"No tracked item {item_id}", err=True)
        sys.exit(1)
    click.echo(f"Removed {item_id}")



@missing.command(name="clear")
@click.confirmation_option(prompt="Forget every tracked missing item?")
def missingClear() -> None:
    _store().clear()
    click.echo("Cleared.")



if __name__ == "__main__":
    main()
