"""
Legendary Injector - installing dumped games

Validates a zip produced by :mod:`archive_packer`, extracts it into the
game directory and registers it in legendary's installed.json.

An install attempt moves through these states, any of which may fail:

    Unvalidated -> FormatChecked -> RecordParsed      (read_archive)
    -> ManifestChecked -> Extracted -> Registered     (install_archive)
"""

from __future__ import annotations

import json
import logging
import shutil
import zipfile
import zlib
from dataclasses import dataclass, field
from pathlib import Path, PurePosixPath

from pydantic import ValidationError

from archive_packer import ARCHIVE_EXTENSION, metadata_path
from errors import (
    AlreadyInstalled,
    CorruptArchive,
    IOFailure,
    InvalidFormat,
    ManifestCorrupt,
)
from installed_record import INSTALL_MARKER, META_MARKER, InstalledRecord, parse_record
from manifest_store import ManifestStore

# Subdirectory of the host's game directory that holds extracted installs
INSTALL_SUBDIR = "legendary-injector"

# Errors zipfile lets through for damaged containers or compression streams
_ZIP_READ_ERRORS = (zipfile.BadZipFile, zlib.error, EOFError)

_log = logging.getLogger(__name__)


@dataclass
class ArchiveContents:
    """A validated Legendary Injector zip."""

    filepath: Path
    record: InstalledRecord
    install_member: str  # archive entry holding install.lin.json
    meta_member: str  # archive entry holding meta.lin.json
    names: list[str] = field(default_factory=list)


def _find_marker(infos: list[zipfile.ZipInfo], marker: str) -> str | None:
    """First entry whose base name is ``marker``, wherever it sits in the tree."""
    for info in infos:
        if info.is_dir():
            continue
        if PurePosixPath(info.filename.replace("\\", "/")).name == marker:
            return info.filename
    return None


def install_dir_for(games_root: str | Path, app_name: str) -> Path:
    return Path(games_root) / INSTALL_SUBDIR / app_name


def read_archive(filepath: str | Path) -> ArchiveContents:
    """Check that filepath is a Legendary Injector zip and parse its record.

    Nothing is written to disk.
    """
    filepath = Path(filepath)
    if filepath.suffix.lower() != ARCHIVE_EXTENSION:
        raise InvalidFormat("File is not a zip file")

    not_ours = InvalidFormat("Zip seemingly is not a valid Legendary Injector zip")
    try:
        with zipfile.ZipFile(filepath, "r") as zf:
            infos = zf.infolist()
            meta_member = _find_marker(infos, META_MARKER)
            if meta_member is None:
                raise not_ours
            install_member = _find_marker(infos, INSTALL_MARKER)
            if install_member is None:
                raise not_ours
            raw = zf.read(install_member)
    except _ZIP_READ_ERRORS as e:
        raise CorruptArchive(f"{filepath.name} is seemingly corrupt or invalid: {e}") from e
    except OSError as e:
        raise IOFailure(f"Could not read {filepath}: {e}") from e

    try:
        record = parse_record(raw)
    except (json.JSONDecodeError, UnicodeDecodeError, ValidationError) as e:
        raise ManifestCorrupt(f"{INSTALL_MARKER} in {filepath.name} is invalid: {e}") from e

    _log.debug("Validated %s: %s (%s)", filepath.name, record.title, record.app_name)
    return ArchiveContents(
        filepath=filepath,
        record=record,
        install_member=install_member,
        meta_member=meta_member,
        names=[info.filename for info in infos],
    )


def _is_inside(path: Path, root: Path) -> bool:
    path, root = path.resolve(), root.resolve()
    return path != root and path.is_relative_to(root)


def extract_all(filepath: Path, dest: Path, meta_member: str) -> Path:
    """Extract the whole archive into dest and return where the metadata marker landed.

    zipfile strips ``..`` and absolute prefixes from member names, so the marker's
    location is taken from zipfile itself rather than rebuilt from the raw name.
    """
    try:
        with zipfile.ZipFile(filepath, "r") as zf:
            zf.extractall(dest)
            meta_path = Path(zf.extract(meta_member, dest))
    except _ZIP_READ_ERRORS as e:
        raise CorruptArchive(f"{filepath.name} is seemingly corrupt or invalid: {e}") from e
    except OSError as e:
        raise IOFailure(f"Could not extract {filepath.name} into {dest}: {e}") from e

    if not _is_inside(meta_path, dest):
        raise InvalidFormat(f"{meta_member} extracts outside {dest}")
    return meta_path


def install_archive(
    archive: str | Path | ArchiveContents,
    store: ManifestStore,
    games_root: str | Path,
    metadata_dir: str | Path,
) -> InstalledRecord:
    """Extract a dumped game and register it in the manifest.

    ``archive`` is a path or the result of :func:`read_archive`; either way it
    is fully validated before the manifest is consulted.  On any
    failure after validation the manifest is left as it was, and the install
    directory and metadata document are removed if this call created them.
    Returns the record that was registered.
    """
    contents = archive if isinstance(archive, ArchiveContents) else read_archive(archive)
    app_name = contents.record.app_name

    installed = store.load()
    if app_name in installed:
        raise AlreadyInstalled(app_name)

    dest = install_dir_for(games_root, app_name)
    install_root = Path(games_root) / INSTALL_SUBDIR
    meta_dst = metadata_path(metadata_dir, app_name)
    if not _is_inside(dest, install_root) or not _is_inside(meta_dst, Path(metadata_dir)):
        raise InvalidFormat(f"app_name {app_name!r} escapes the install directory")
    record = contents.record.installed_at(str(dest))

    created_dest = not dest.exists()
    published_meta = False
    try:
        try:
            dest.mkdir(parents=True, exist_ok=True)
        except OSError as e:
            raise IOFailure(f"Could not create {dest}: {e}") from e

        _log.info("Extracting %s -> %s", contents.filepath.name, dest)
        meta_src = extract_all(contents.filepath, dest, contents.meta_member)

        if not meta_dst.exists():
            try:
                meta_dst.parent.mkdir(parents=True, exist_ok=True)
                shutil.copyfile(meta_src, meta_dst)
            except OSError as e:
                raise IOFailure(f"Could not publish metadata to {meta_dst}: {e}") from e
            published_meta = True
            _log.debug("Published metadata %s", meta_dst)
        else:
            _log.debug("Keeping existing metadata %s", meta_dst)

        installed[app_name] = record
        store.save(installed)
    except BaseException:
        _log.warning("Install of %s failed, cleaning up", contents.filepath.name)
        if published_meta and meta_dst.exists():
            meta_dst.unlink()
        if created_dest and dest.exists():
            shutil.rmtree(dest, ignore_errors=True)
        raise

    _log.info("Registered %s (%s) at %s", record.title, app_name, dest)
    return record
