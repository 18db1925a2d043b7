#!/usr/bin/env python3
"""Legendary Injector - Entry Point

Without a sub-command the PySide6 window is opened.  ``list``, ``dump`` and
``install`` run the same operations headless, printing the host prompts.
"""

import argparse
import faulthandler
import logging
import os
import sys
import traceback
from logging.handlers import RotatingFileHandler
from pathlib import Path


def data_dir() -> Path:
    if sys.platform == "win32":
        base = Path(os.environ.get("APPDATA", "~")).expanduser()
    else:
        base = Path(os.environ.get("XDG_DATA_HOME") or Path.home() / ".local" / "share")
    return base / "LegendaryInjector"


def setup_logging() -> tuple[logging.Logger, Path]:
    log_dir = data_dir()
    log_dir.mkdir(parents=True, exist_ok=True)
    log_file = log_dir / "linjector.log"

    handler = RotatingFileHandler(
        log_file,
        maxBytes=1 * 1024 * 1024,  # 1 MB
        backupCount=2,
        encoding="utf-8",
    )
    handler.setFormatter(
        logging.Formatter("%(asctime)s  %(levelname)-8s  %(name)s: %(message)s")
    )

    # Core modules log under their own module names, so the file handler sits
    # on the root logger to collect them all.
    root = logging.getLogger()
    root.setLevel(logging.DEBUG)
    root.addHandler(handler)
    return logging.getLogger("linjector"), log_dir


def install_crash_handler(logger: logging.Logger, log_dir: Path):
    # Python-level unhandled exceptions
    def handle_exception(exc_type, exc_value, exc_tb):
        if issubclass(exc_type, KeyboardInterrupt):
            sys.__excepthook__(exc_type, exc_value, exc_tb)
            return
        logger.critical(
            "Unhandled exception:\n%s",
            "".join(traceback.format_exception(exc_type, exc_value, exc_tb)),
        )

    sys.excepthook = handle_exception

    # C-level crashes (segfault, abort): faulthandler cannot use Python
    # logging after a crash, so it gets its own file
    crash_file = log_dir / "crash.log"
    faulthandler.enable(open(crash_file, "w"), all_threads=True)


def parse_args(argv=None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Legendary Injector")
    parser.add_argument("--legendary-dir", help="legendary config dir (installed.json, metadata/)")
    parser.add_argument("--game-dir", help="directory installed zips are extracted into")
    parser.add_argument("--settings-org", default="LegendaryInjector")
    parser.add_argument("--settings-app", default="LegendaryInjector")
    parser.add_argument("--no-persist-settings", action="store_true")

    sub = parser.add_subparsers(dest="command")
    sub.add_parser("list", help="list installed games")
    dump = sub.add_parser("dump", help="dump an installed game to a zip")
    dump.add_argument("app_name")
    dump.add_argument("dest")
    install = sub.add_parser("install", help="install a game from a dumped zip")
    install.add_argument("zip")
    return parser.parse_args(argv)


def run_headless(args: argparse.Namespace) -> int:
    from host_bridge import ConsoleHost
    from injector import LegendaryInjector

    game_dir = args.game_dir or str(Path.home() / "Games")
    host = ConsoleHost(
        game_dir,
        folder=getattr(args, "dest", None),
        file=getattr(args, "zip", None),
    )
    injector = LegendaryInjector(host, legendary_dir=args.legendary_dir)

    if args.command == "list":
        for app_name, rec in sorted(injector.installed_games().items()):
            print(f"{app_name}\t{rec.title}\t{rec.version}\t{rec.install_path}")
        return 0

    if args.command == "dump":
        rec = injector.installed_games().get(args.app_name)
        if rec is None:
            print(f"{args.app_name} is not installed", file=sys.stderr)
            return 1
        result = injector.dump_game_menu(rec)
    else:
        result = injector.extract_game_menu()

    return 0 if result and result[0] else 1


def cli():
    args = parse_args()

    logger, log_dir = setup_logging()
    install_crash_handler(logger, log_dir)
    logger.info("Starting Legendary Injector (%s)", args.command or "gui")

    if args.command:
        sys.exit(run_headless(args))

    from gui import main
    main(
        logger,
        legendary_dir_override=args.legendary_dir,
        game_dir_override=args.game_dir,
        settings_org=args.settings_org,
        settings_app=args.settings_app,
        persist_settings=not args.no_persist_settings,
    )


if __name__ == "__main__":
    cli()
