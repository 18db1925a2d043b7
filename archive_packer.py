"""
Legendary Injector - game dumping

Packs an installed game into a portable zip:

    <title>.zip
    ├── install.lin.json   <- portable InstalledRecord (no install/save path)
    ├── meta.lin.json      <- copy of legendary's metadata/<app_name>.json
    └── ...                <- the full install directory tree
"""

from __future__ import annotations

import logging
import os
import shutil
import zipfile
from pathlib import Path

from errors import IOFailure, MetadataMissing
from installed_record import INSTALL_MARKER, META_MARKER, InstalledRecord

ARCHIVE_EXTENSION = ".zip"

# Characters rejected in file names by at least one common host filesystem.
# Archives travel between machines, so the strictest set (Windows) applies.
ILLEGAL_FILENAME_CHARS = frozenset('<>:"/\\|?*') | frozenset(chr(c) for c in range(32))

_log = logging.getLogger(__name__)


def metadata_path(metadata_dir: str | Path, app_name: str) -> Path:
    return Path(metadata_dir) / f"{app_name}.json"


def archive_name_for(record: InstalledRecord) -> str:
    """File name for a dump: the title, or the app name if the title is unusable."""
    title = record.title
    if not title.strip() or any(ch in ILLEGAL_FILENAME_CHARS for ch in title):
        return f"{record.app_name}{ARCHIVE_EXTENSION}"
    return f"{title}{ARCHIVE_EXTENSION}"


def zip_directory(src_dir: Path, out_path: Path) -> int:
    """Zip every file under src_dir into out_path, paths relative to src_dir.

    Writes to ``<out_path>.part`` first and renames on success; a failure
    leaves no file under ``out_path``.  Returns the number of files written.
    """
    part = out_path.with_name(out_path.name + ".part")
    # Dumping into the install directory itself: earlier dumps sitting next to
    # the game files are not part of the install
    skip_zips = out_path.parent.resolve() == src_dir.resolve()
    count = 0
    try:
        with zipfile.ZipFile(part, "w", compression=zipfile.ZIP_DEFLATED) as zf:
            for f in sorted(src_dir.rglob("*")):
                if not f.is_file() or f == part:
                    continue
                if skip_zips and f.parent == src_dir and f.suffix.lower() == ARCHIVE_EXTENSION:
                    continue
                zf.write(f, f.relative_to(src_dir).as_posix())
                count += 1
        os.replace(part, out_path)
    except BaseException:
        if part.exists():
            part.unlink()
        raise
    return count


def dump_installation(
    record: InstalledRecord,
    dest_dir: str | Path,
    metadata_dir: str | Path,
) -> Path:
    """Write the marker files into the install directory and zip it into dest_dir.

    ``record`` is left untouched; the archive gets :meth:`InstalledRecord.portable`.
    Returns the path of the written archive.
    """
    install_dir = Path(record.install_path)
    dest_dir = Path(dest_dir)
    meta_src = metadata_path(metadata_dir, record.app_name)

    if not record.install_path or not install_dir.is_dir():
        raise IOFailure(f"Install directory does not exist: {record.install_path or '(empty)'}")
    if not meta_src.is_file():
        raise MetadataMissing(record.app_name, meta_src)
    if not dest_dir.is_dir():
        raise IOFailure(f"Destination directory does not exist: {dest_dir}")

    install_marker = install_dir / INSTALL_MARKER
    meta_marker = install_dir / META_MARKER

    try:
        install_marker.write_text(record.portable().to_json(), encoding="utf-8")
        _log.debug("Wrote %s", install_marker)

        if meta_marker.exists():
            meta_marker.unlink()
        shutil.copyfile(meta_src, meta_marker)
        _log.debug("Copied %s -> %s", meta_src, meta_marker)
    except OSError as e:
        raise IOFailure(f"Could not write marker files into {install_dir}: {e}") from e

    out_path = dest_dir / archive_name_for(record)
    _log.info("Zipping %s -> %s", install_dir, out_path)
    try:
        count = zip_directory(install_dir, out_path)
    except OSError as e:
        raise IOFailure(f"Could not create {out_path}: {e}") from e

    _log.info("Dumped %s (%d file(s)) to %s", record.app_name, count, out_path)
    return out_path
