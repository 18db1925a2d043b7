"""
Legendary Injector - installed.json persistence

Loads and saves legendary's manifest of installed games.  The manifest is the
single source of truth for what is installed, so callers re-load it at the
start of every operation instead of caching it.
"""

from __future__ import annotations

import json
import logging
import os
import tempfile
from pathlib import Path

from pydantic import ValidationError

from errors import IOFailure, ManifestCorrupt
from installed_record import InstalledRecord

MANIFEST_FILENAME = "installed.json"

_log = logging.getLogger(__name__)


class ManifestStore:
    """Read/write access to one installed.json file.

    There is no locking: a single process is assumed to own the file for the
    duration of an operation.
    """

    def __init__(self, path: str | Path):
        self.path = Path(path)

    def load(self) -> dict[str, InstalledRecord]:
        if not self.path.exists():
            _log.debug("No manifest at %s, treating as empty", self.path)
            return {}

        try:
            raw = self.path.read_text(encoding="utf-8")
        except OSError as e:
            raise IOFailure(f"Could not read {self.path}: {e}") from e

        try:
            data = json.loads(raw)
        except json.JSONDecodeError as e:
            raise ManifestCorrupt(f"{self.path} is not valid JSON: {e}") from e
        if not isinstance(data, dict):
            raise ManifestCorrupt(
                f"{self.path} should hold an object, got {type(data).__name__}"
            )

        installed: dict[str, InstalledRecord] = {}
        for key, rec in data.items():
            try:
                installed[key] = InstalledRecord.model_validate(rec)
            except ValidationError as e:
                raise ManifestCorrupt(f"Invalid entry {key!r} in {self.path}: {e}") from e

        _log.debug("Loaded %d installed game(s) from %s", len(installed), self.path)
        return installed

    def save(self, installed: dict[str, InstalledRecord]):
        """Replace the manifest with ``installed``.

        The new content goes to a temporary file next to the manifest and is
        swapped in with ``os.replace``, so readers only ever see the old or the
        new mapping.
        """
        data = {key: rec.to_json_dict() for key, rec in installed.items()}
        text = json.dumps(data, indent=2, sort_keys=True, ensure_ascii=False)

        tmp_name = None
        try:
            self.path.parent.mkdir(parents=True, exist_ok=True)
            with tempfile.NamedTemporaryFile(
                "w",
                encoding="utf-8",
                dir=self.path.parent,
                prefix=f".{self.path.name}.",
                suffix=".tmp",
                delete=False,
            ) as tmp:
                tmp_name = tmp.name
                tmp.write(text)
                tmp.flush()
                os.fsync(tmp.fileno())
            os.replace(tmp_name, self.path)
        except OSError as e:
            if tmp_name and os.path.exists(tmp_name):
                os.unlink(tmp_name)
            raise IOFailure(f"Could not write {self.path}: {e}") from e

        _log.debug("Saved %d installed game(s) to %s", len(installed), self.path)
