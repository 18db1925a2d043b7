"""
Tests for LegendaryInjector: commands, host reporting and the dump/install round trip.
"""

import json
import zipfile

from archive_unpacker import INSTALL_SUBDIR
from injector import LegendaryInjector, legendary_config_dir
from installed_record import INSTALL_MARKER, META_MARKER
from manifest_store import ManifestStore
from tests.conftest import RecordingHost, make_game_zip, make_record, make_zip


# ── helpers ──────────────────────────────────────────────────────────────────

def make_injector(legendary_dir, host):
    return LegendaryInjector(host, legendary_dir=legendary_dir, log_callback=lambda _: None)


# ── config ───────────────────────────────────────────────────────────────────

def test_config_dir_env_override(monkeypatch, tmp_path):
    monkeypatch.setenv("LEGENDARY_CONFIG_PATH", str(tmp_path / "custom"))
    assert legendary_config_dir() == tmp_path / "custom"


def test_config_dir_xdg(monkeypatch, tmp_path):
    monkeypatch.delenv("LEGENDARY_CONFIG_PATH", raising=False)
    monkeypatch.setenv("XDG_CONFIG_HOME", str(tmp_path / "xdg"))
    assert legendary_config_dir() == tmp_path / "xdg" / "legendary"


# ── commands ─────────────────────────────────────────────────────────────────

def test_global_commands(legendary_dir, game_dir, store):
    store.save({
        "A": make_record("A", title="Alpha"),
        "B": make_record("B", title="Bravo"),
    })
    injector = make_injector(legendary_dir, RecordingHost(game_dir))

    dump, install = injector.get_global_commands()

    assert dump.name == "Dump Game"
    assert dump.action is None
    assert [c.name for c in dump.children] == ["Alpha", "Bravo"]
    assert install.name == "Install game via zip"
    assert install.children == []


def test_commands_with_corrupt_manifest(legendary_dir, game_dir, store):
    store.path.write_text("garbage", encoding="utf-8")
    injector = make_injector(legendary_dir, RecordingHost(game_dir))
    dump, _ = injector.get_global_commands()
    assert dump.children == []


def test_dump_command_asks_for_folder(installed_game, legendary_dir, game_dir, dump_dir):
    host = RecordingHost(game_dir, folder=str(dump_dir))
    injector = make_injector(legendary_dir, host)

    dump, _ = injector.get_global_commands()
    ok, msg = dump.children[0].action()

    assert ok, msg
    assert host.pick_calls == [("folder", "Dump MyGame to?", "Destination folder", "Dump")]
    assert (dump_dir / "MyGame.zip").exists()


def test_cancelled_picker_does_nothing(legendary_dir, game_dir):
    host = RecordingHost(game_dir)
    injector = make_injector(legendary_dir, host)

    assert injector.extract_game_menu() is None
    assert host.pick_calls == [("file", "Select a game zip", "Game Zip Path", "Extract")]
    assert host.prompts == []


def test_task_runner_receives_work(legendary_dir, game_dir, tmp_path):
    calls = []
    host = RecordingHost(game_dir, file=str(tmp_path / "x.zip"))
    injector = LegendaryInjector(
        host,
        legendary_dir=legendary_dir,
        log_callback=lambda _: None,
        task_runner=lambda func, *args: calls.append((func, args)),
    )

    injector.extract_game_menu()

    assert calls == [(injector.extract_game, (str(tmp_path / "x.zip"),))]


# ── dump ─────────────────────────────────────────────────────────────────────

def test_dump_reports_success(installed_game, legendary_dir, game_dir, dump_dir):
    host = RecordingHost(game_dir)
    injector = make_injector(legendary_dir, host)

    ok, msg = injector.dump_game(installed_game, dump_dir)

    assert ok
    assert host.prompts == ["Dumping game..."]
    assert host.dismissible == [f"Dumped MyGame as MyGame.zip in {dump_dir}"]


def test_dump_uses_app_name_for_illegal_title(tmp_path, legendary_dir, game_dir, store, dump_dir):
    install_dir = tmp_path / "epic" / "sugar"
    install_dir.mkdir(parents=True)
    (install_dir / "game.bin").write_bytes(b"data")
    (legendary_dir / "metadata" / "Sugar.json").write_text("{}", encoding="utf-8")
    rec = make_record("Sugar", install_path=str(install_dir), title="Sugar: Deluxe")
    store.save({"Sugar": rec})

    ok, _ = make_injector(legendary_dir, RecordingHost(game_dir)).dump_game(rec, dump_dir)

    assert ok
    assert (dump_dir / "Sugar.zip").exists()


def test_dump_missing_metadata_reported(installed_game, legendary_dir, game_dir, dump_dir):
    (legendary_dir / "metadata" / "Fortnite.json").unlink()
    host = RecordingHost(game_dir)

    ok, msg = make_injector(legendary_dir, host).dump_game(installed_game, dump_dir)

    assert not ok
    assert msg.startswith("Failed to dump game: No metadata found for Fortnite")
    assert host.dismissible == [msg]


def test_dump_prefers_fresh_manifest_record(installed_game, legendary_dir, game_dir, dump_dir, store):
    store.save({"Fortnite": installed_game.model_copy(update={"version": "2.0.0"})})

    make_injector(legendary_dir, RecordingHost(game_dir)).dump_game(installed_game, dump_dir)

    with zipfile.ZipFile(dump_dir / "MyGame.zip") as zf:
        assert json.loads(zf.read(INSTALL_MARKER))["version"] == "2.0.0"


# ── extract ──────────────────────────────────────────────────────────────────

def test_extract_reports_success_and_reloads(tmp_path, legendary_dir, game_dir):
    host = RecordingHost(game_dir)
    path = make_game_zip(tmp_path / "MyGame.zip", make_record())

    ok, msg = make_injector(legendary_dir, host).extract_game(path)

    assert ok, msg
    assert host.prompts == ["Extracting..."]
    assert host.dismissible == ["Added MyGame to library"]
    assert host.reloads == 1


def test_extract_leaves_loaded_games_to_the_caller(tmp_path, legendary_dir, game_dir):
    host = RecordingHost(game_dir)
    injector = make_injector(legendary_dir, host)
    loaded = {}
    injector.installed = loaded
    path = make_game_zip(tmp_path / "MyGame.zip", make_record())

    ok, msg = injector.extract_game(path)

    assert ok, msg
    assert injector.installed is loaded
    assert host.reloads == 1


def test_extract_wrong_extension(tmp_path, legendary_dir, game_dir):
    host = RecordingHost(game_dir)
    ok, msg = make_injector(legendary_dir, host).extract_game(tmp_path / "game.rar")
    assert not ok
    assert msg == "Failed to validate zip: File is not a zip file"
    assert host.reloads == 0


def test_extract_not_ours(tmp_path, legendary_dir, game_dir):
    path = make_zip(tmp_path / "random.zip", {"readme.txt": b"hi"})
    ok, msg = make_injector(legendary_dir, RecordingHost(game_dir)).extract_game(path)
    assert not ok
    assert msg == "Failed to validate zip: Zip seemingly is not a valid Legendary Injector zip"
    assert list(game_dir.iterdir()) == []


def test_extract_corrupt(tmp_path, legendary_dir, game_dir):
    path = tmp_path / "broken.zip"
    path.write_bytes(b"PK\x03\x04 truncated")
    ok, msg = make_injector(legendary_dir, RecordingHost(game_dir)).extract_game(path)
    assert not ok
    assert msg == "Failed to validate zip: Zip file is seemingly corrupt or invalid"


def test_extract_duplicate(tmp_path, installed_game, legendary_dir, game_dir, store):
    before = store.path.read_bytes()
    path = make_game_zip(tmp_path / "MyGame.zip", make_record())
    host = RecordingHost(game_dir)

    ok, msg = make_injector(legendary_dir, host).extract_game(path)

    assert not ok
    assert msg == "Game is already installed"
    assert store.path.read_bytes() == before
    assert host.reloads == 0


def test_extract_corrupt_shared_manifest(tmp_path, legendary_dir, game_dir, store):
    store.path.write_text("{broken", encoding="utf-8")
    path = make_game_zip(tmp_path / "MyGame.zip", make_record())

    ok, msg = make_injector(legendary_dir, RecordingHost(game_dir)).extract_game(path)

    assert not ok
    assert msg.startswith("Failed to extract zip:")
    assert store.path.read_text(encoding="utf-8") == "{broken"


# ── round trip ───────────────────────────────────────────────────────────────

def test_dump_then_install_on_another_machine(installed_game, legendary_dir, dump_dir, tmp_path):
    ok, _ = make_injector(legendary_dir, RecordingHost(tmp_path)).dump_game(
        installed_game, dump_dir
    )
    assert ok

    other_legendary = tmp_path / "other" / "legendary"
    other_games = tmp_path / "other" / "games"
    host = RecordingHost(other_games)
    ok, msg = make_injector(other_legendary, host).extract_game(dump_dir / "MyGame.zip")
    assert ok, msg

    installed = ManifestStore(other_legendary / "installed.json").load()
    new = installed["Fortnite"]
    dest = other_games / INSTALL_SUBDIR / "Fortnite"
    assert new.install_path == str(dest)
    assert new.save_path is None
    assert new.model_dump(exclude={"install_path", "save_path"}) == (
        installed_game.model_dump(exclude={"install_path", "save_path"})
    )
    assert (dest / "Content" / "data.pak").read_bytes() == b"\x01" * 128
    assert (other_legendary / "metadata" / "Fortnite.json").read_bytes() == (
        (dest / META_MARKER).read_bytes()
    )

    # source machine's manifest entry still points at the original paths
    source = ManifestStore(legendary_dir / "installed.json").load()["Fortnite"]
    assert source.install_path == installed_game.install_path
    assert source.save_path == "/home/user/saves/game"
