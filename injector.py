"""
Legendary Injector - Core Logic

Dumps games installed by legendary into portable zips and installs such zips
back into legendary's library.  All UI goes through a :class:`HostBridge`.
"""

from __future__ import annotations

import logging
import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Callable, Optional

from archive_packer import dump_installation
from archive_unpacker import install_archive, read_archive
from errors import AlreadyInstalled, CorruptArchive, InjectorError
from host_bridge import HostBridge
from installed_record import InstalledRecord
from manifest_store import MANIFEST_FILENAME, ManifestStore

SERVICE_NAME = "Legendary Injector"
VERSION = "v1.0"
SLUG = "linjector"

_log = logging.getLogger(__name__)


def legendary_config_dir() -> Path:
    """Directory holding legendary's installed.json and metadata/.

    Honours ``LEGENDARY_CONFIG_PATH`` like legendary itself, then
    ``XDG_CONFIG_HOME``, then ``~/.config``.
    """
    override = os.environ.get("LEGENDARY_CONFIG_PATH")
    if override:
        return Path(override).expanduser()
    base = os.environ.get("XDG_CONFIG_HOME") or Path.home() / ".config"
    return Path(base) / "legendary"


@dataclass
class Command:
    """A menu entry exposed to the host: either runnable or a submenu."""

    name: str
    action: Optional[Callable[[], object]] = None
    children: list["Command"] = field(default_factory=list)


class LegendaryInjector:
    """
    Plugin controller.

    Workflow:
        1. get_global_commands() to build the host menu
        2. dump_game_menu() / extract_game_menu() ask the host for a path
        3. dump_game() / extract_game() do the work and report back to the host
    """

    def __init__(
        self,
        host: HostBridge,
        legendary_dir: str | Path | None = None,
        log_callback: Optional[Callable[[str], None]] = None,
        task_runner: Optional[Callable[..., object]] = None,
    ):
        self.host = host
        self.legendary_dir = Path(legendary_dir) if legendary_dir else legendary_config_dir()
        self.metadata_dir = self.legendary_dir / "metadata"
        self.store = ManifestStore(self.legendary_dir / MANIFEST_FILENAME)
        self._log_cb = log_callback or _log.info
        # Runs dump_game / extract_game once a path is picked; the GUI passes
        # one that moves the work onto a worker thread.
        self._run_task = task_runner or (lambda func, *args: func(*args))

        self.installed: dict[str, InstalledRecord] = {}

    # ── Logging ───────────────────────────────────────────────────────

    def log(self, msg: str):
        self._log_cb(msg)

    # ── Installed Games ───────────────────────────────────────────────

    def installed_games(self) -> dict[str, InstalledRecord]:
        """Re-read installed.json and return it.

        A corrupt manifest is logged and reported as empty so the menu can
        still be built; the error resurfaces on the next dump or install.
        """
        try:
            self.installed = self.store.load()
        except InjectorError as e:
            self.log(f"Warning: Could not load installed games: {e}")
            self.installed = {}
        return self.installed

    # ── Commands ──────────────────────────────────────────────────────

    def get_global_commands(self) -> list[Command]:
        games = self.installed_games()
        dump = Command(
            "Dump Game",
            children=[
                Command(rec.title or rec.app_name, action=lambda rec=rec: self.dump_game_menu(rec))
                for rec in sorted(games.values(), key=lambda r: (r.title or r.app_name).lower())
            ],
        )
        return [dump, Command("Install game via zip", action=self.extract_game_menu)]

    def dump_game_menu(self, record: InstalledRecord) -> tuple[bool, str] | None:
        dest = self.host.pick_folder(
            f"Dump {record.title} to?", "Destination folder", "Dump"
        )
        if not dest:
            return None
        return self._run_task(self.dump_game, record, dest)

    def extract_game_menu(self) -> tuple[bool, str] | None:
        path = self.host.pick_file("Select a game zip", "Game Zip Path", "Extract")
        if not path:
            return None
        return self._run_task(self.extract_game, path)

    # ── Dump ──────────────────────────────────────────────────────────

    def dump_game(self, record: InstalledRecord, dest_dir: str | Path) -> tuple[bool, str]:
        self.host.show_text_prompt("Dumping game...")
        self.log(f"Dumping {record.title} ({record.app_name}) to {dest_dir}...")

        try:
            fresh = self.store.load().get(record.app_name)
            if fresh is not None:
                record = fresh
            out_path = dump_installation(record, dest_dir, self.metadata_dir)
        except InjectorError as e:
            return self._fail(f"Failed to dump game: {e}")
        except Exception as e:
            _log.exception("Unexpected error dumping %s", record.app_name)
            return self._fail(f"Failed to dump game: {e}")

        msg = f"Dumped {record.title} as {out_path.name} in {dest_dir}"
        self.log(f"  {msg}")
        self.host.show_dismissible_text_prompt(msg)
        return True, msg

    # ── Extract ───────────────────────────────────────────────────────

    def extract_game(self, path: str | Path) -> tuple[bool, str]:
        self.host.show_text_prompt("Extracting...")
        self.log(f"Installing game from {path}...")

        try:
            contents = read_archive(path)
        except CorruptArchive:
            return self._fail("Failed to validate zip: Zip file is seemingly corrupt or invalid")
        except InjectorError as e:
            return self._fail(f"Failed to validate zip: {e}")
        except Exception as e:
            _log.exception("Unexpected error validating %s", path)
            return self._fail(f"Failed to validate zip: {e}")

        try:
            record = install_archive(
                contents, self.store, self.host.game_dir, self.metadata_dir
            )
        except AlreadyInstalled:
            return self._fail("Game is already installed")
        except InjectorError as e:
            return self._fail(f"Failed to extract zip: {e}")
        except Exception as e:
            _log.exception("Unexpected error installing %s", path)
            return self._fail(f"Failed to extract zip: {e}")

        self.host.reload_games()
        msg = f"Added {record.title} to library"
        self.log(f"  {msg}")
        self.host.show_dismissible_text_prompt(msg)
        return True, msg

    def _fail(self, msg: str) -> tuple[bool, str]:
        self.log(f"  {msg}")
        self.host.show_dismissible_text_prompt(msg)
        return False, msg
