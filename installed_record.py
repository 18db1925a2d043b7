"""
Installed game record for Legendary Injector.

One record exists per game in legendary's ``installed.json``, keyed by the
game's ``app_name``.  Field names match legendary's own JSON so records can be
round-tripped without translation.

A dumped archive carries a *portable* copy of the record as
``install.lin.json``: the machine-specific ``install_path`` and ``save_path``
are blanked so the archive can be installed on any machine.  Next to it sits
``meta.lin.json``, a verbatim copy of legendary's per-game metadata document.

Only ``app_name`` is required.  Every other field falls back to an empty
default, since archives produced by older builds sometimes carry partially
filled in records.
"""

from __future__ import annotations

import json
import logging
from pathlib import PurePath

from pydantic import BaseModel, ConfigDict, Field, JsonValue, field_validator

INSTALL_MARKER = "install.lin.json"
META_MARKER = "meta.lin.json"

# Omitted from the JSON entirely when unset instead of being written as null.
_OMIT_WHEN_NONE = ("install_tags", "platform")

_log = logging.getLogger(__name__)


class InstalledRecord(BaseModel):
    """A single entry of legendary's installed.json.

    Records are frozen.  Use :meth:`portable` and :meth:`installed_at` to
    derive modified copies; the original is never touched.
    """

    model_config = ConfigDict(frozen=True, extra="allow")

    app_name: str
    title: str = ""
    base_urls: list[str] = Field(default_factory=list)
    can_run_offline: bool = False
    egl_guid: str = ""
    executable: str = ""
    install_path: str = ""
    install_size: int = 0
    install_tags: list[JsonValue] | None = None
    is_dlc: bool = False
    launch_parameters: str = ""
    manifest_path: str = ""
    needs_verification: bool = False
    platform: str | None = None
    prereq_info: JsonValue = None
    requires_ot: bool = False
    save_path: JsonValue = None  # opaque, null when unset
    version: str = ""

    @field_validator("app_name")
    @classmethod
    def _check_app_name(cls, v: str) -> str:
        if not v.strip():
            raise ValueError("app_name must not be empty")
        # app_name names the install directory and the metadata document, so
        # it has to be a single plain path component
        if (
            any(ch in v for ch in ("/", "\\", "\0"))
            or v in (".", "..")
            or PurePath(v).name != v
        ):
            raise ValueError(f"app_name {v!r} is not a valid file name")
        return v

    @field_validator(
        "title",
        "egl_guid",
        "executable",
        "install_path",
        "launch_parameters",
        "manifest_path",
        "version",
        mode="before",
    )
    @classmethod
    def _null_to_empty(cls, v):
        # legendary writes null for some string fields on partial installs
        return "" if v is None else v

    @field_validator("base_urls", mode="before")
    @classmethod
    def _null_to_list(cls, v):
        return [] if v is None else v

    def portable(self) -> InstalledRecord:
        """Copy with the machine-specific paths cleared, ready for an archive."""
        return self.model_copy(update={"install_path": "", "save_path": None})

    def installed_at(self, install_path: str) -> InstalledRecord:
        return self.model_copy(update={"install_path": install_path})

    def to_json_dict(self) -> dict:
        data = self.model_dump(mode="json")
        for key in _OMIT_WHEN_NONE:
            if data.get(key) is None:
                data.pop(key, None)
        return data

    def to_json(self) -> str:
        return json.dumps(self.to_json_dict(), indent=2, ensure_ascii=False)


def parse_record(data: bytes | str) -> InstalledRecord:
    """Parse raw JSON into an InstalledRecord.

    Raises ``pydantic.ValidationError`` if the data is not a valid record.
    Raises ``json.JSONDecodeError`` if the bytes are not valid JSON.
    """
    record = InstalledRecord.model_validate(json.loads(data))
    if record.model_extra:
        _log.debug(
            "Record %s carries unrecognised field(s): %s",
            record.app_name, sorted(record.model_extra),
        )
    return record
