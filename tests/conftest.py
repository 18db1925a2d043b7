"""
Shared fixtures and helpers for the Legendary Injector test suite.
"""

import json
import zipfile
from pathlib import Path

import pytest

from installed_record import INSTALL_MARKER, META_MARKER, InstalledRecord
from manifest_store import ManifestStore


def make_record(app_name="Fortnite", install_path="", **overrides) -> InstalledRecord:
    fields = dict(
        app_name=app_name,
        title="MyGame",
        base_urls=["https://cdn.example.com/builds"],
        can_run_offline=True,
        egl_guid="ABCDEF0123456789",
        executable="Bin/Game.exe",
        install_path=install_path,
        install_size=4096,
        install_tags=[],
        is_dlc=False,
        launch_parameters="-nosplash",
        manifest_path="/home/user/.config/legendary/manifests/game.manifest",
        needs_verification=False,
        platform="Windows",
        prereq_info={"ids": ["vcredist"], "path": "redist/vc.exe"},
        requires_ot=False,
        save_path="/home/user/saves/game",
        version="1.2.3",
    )
    fields.update(overrides)
    return InstalledRecord(**fields)


def make_zip(path, members):
    """Write a zip at path from a {member_name: data} dict and return the path."""
    with zipfile.ZipFile(path, "w") as zf:
        for member, data in members.items():
            zf.writestr(member, data)
    return path


def make_game_zip(path, record: InstalledRecord, meta=b'{"app_name": "meta"}', extra=None):
    """A well-formed dump: both markers plus a couple of game files."""
    members = {
        INSTALL_MARKER: record.portable().to_json(),
        META_MARKER: meta,
        "Bin/Game.exe": b"MZ fake exe",
        "Content/data.pak": b"\x00" * 64,
    }
    members.update(extra or {})
    return make_zip(path, members)


class RecordingHost:
    """HostBridge that records every prompt and answers pickers from presets."""

    def __init__(self, game_dir, folder=None, file=None):
        self.game_dir = str(game_dir)
        self.folder = folder
        self.file = file
        self.prompts: list[str] = []
        self.dismissible: list[str] = []
        self.pick_calls: list[tuple[str, str, str, str]] = []
        self.reloads = 0

    def show_text_prompt(self, message):
        self.prompts.append(message)

    def show_dismissible_text_prompt(self, message):
        self.dismissible.append(message)

    def pick_folder(self, title, label, action_label):
        self.pick_calls.append(("folder", title, label, action_label))
        return self.folder

    def pick_file(self, title, label, action_label):
        self.pick_calls.append(("file", title, label, action_label))
        return self.file

    def reload_games(self):
        self.reloads += 1


@pytest.fixture
def legendary_dir(tmp_path):
    """A fresh legendary config dir with an empty metadata/ store."""
    d = tmp_path / "legendary"
    (d / "metadata").mkdir(parents=True)
    return d


@pytest.fixture
def game_dir(tmp_path):
    d = tmp_path / "games"
    d.mkdir()
    return d


@pytest.fixture
def store(legendary_dir):
    return ManifestStore(legendary_dir / "installed.json")


@pytest.fixture
def installed_game(tmp_path, legendary_dir, store):
    """An installed game on disk: files, metadata document and manifest entry."""
    install_dir = tmp_path / "epic" / "Fortnite"
    (install_dir / "Bin").mkdir(parents=True)
    (install_dir / "Bin" / "Game.exe").write_bytes(b"MZ fake exe")
    (install_dir / "Content").mkdir()
    (install_dir / "Content" / "data.pak").write_bytes(b"\x01" * 128)

    (legendary_dir / "metadata" / "Fortnite.json").write_text(
        json.dumps({"app_name": "Fortnite", "metadata": {"title": "MyGame"}}),
        encoding="utf-8",
    )

    record = make_record(install_path=str(install_dir))
    store.save({record.app_name: record})
    return record


@pytest.fixture
def dump_dir(tmp_path) -> Path:
    d = tmp_path / "dumps"
    d.mkdir()
    return d
