"""
Host surface used by Legendary Injector.

The launcher that hosts the plugin owns every piece of UI: text prompts,
folder/file pickers and the game list.  The controller only talks to it
through :class:`HostBridge`.
"""

from __future__ import annotations

import sys
from pathlib import Path
from typing import Optional, Protocol, TextIO


class HostBridge(Protocol):
    game_dir: str  # Base directory the host installs games into

    def show_text_prompt(self, message: str) -> None: ...

    def show_dismissible_text_prompt(self, message: str) -> None: ...

    def pick_folder(self, title: str, label: str, action_label: str) -> Optional[str]: ...

    def pick_file(self, title: str, label: str, action_label: str) -> Optional[str]: ...

    def reload_games(self) -> None: ...


class ConsoleHost:
    """Headless host: prompts go to a stream, picks come from preset answers.

    Used by ``main.py --headless`` where the folder/file is already known from
    the command line.  A pick with no preset answer counts as cancelled.
    """

    def __init__(
        self,
        game_dir: str | Path,
        *,
        folder: str | None = None,
        file: str | None = None,
        stream: TextIO | None = None,
    ):
        self.game_dir = str(game_dir)
        self._folder = folder
        self._file = file
        self._stream = stream or sys.stdout
        self.reload_count = 0

    def _write(self, message: str):
        print(message, file=self._stream)

    def show_text_prompt(self, message: str) -> None:
        self._write(message)

    def show_dismissible_text_prompt(self, message: str) -> None:
        self._write(message)

    def pick_folder(self, title: str, label: str, action_label: str) -> Optional[str]:
        return self._folder

    def pick_file(self, title: str, label: str, action_label: str) -> Optional[str]:
        return self._file

    def reload_games(self) -> None:
        self.reload_count += 1
