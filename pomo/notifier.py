from __future__ import annotations

import platform
import shutil
import subprocess
import sys
from typing import TextIO

from .timer import TimerState


class DesktopNotifier:
    """Announces timer completion through the platform notification tool.

    Falls back to writing a line on ``stream`` when no tool is available or
    the tool fails.
    """

    def __init__(self, stream: TextIO | None = None, title: str = "Pomo") -> None:
        self.stream = stream or sys.stdout
        self.title = title
        self._label: str | None = None

    def timer_progress(self, state: TimerState) -> None:
        self._label = state.label

    def timer_completed(self) -> None:
        name = self._label or "计时"
        self.notify(self.title, f"{name} 已完成")

    def notify(self, title: str, message: str) -> None:
        sent = False
        system_name = platform.system().lower()

        try:
            if system_name == "darwin" and shutil.which("osascript"):
                script = f'display notification "{self._escape(message)}" with title "{self._escape(title)}"'
                sent = self._run(["osascript", "-e", script])
            elif system_name == "linux" and shutil.which("notify-send"):
                sent = self._run(["notify-send", title, message])
        except OSError:
            sent = False

        if not sent:
            self.stream.write(f"[通知] {title}: {message}\n")
            self.stream.flush()

    @staticmethod
    def _run(command: list[str]) -> bool:
        result = subprocess.run(
            command,
            check=False,
            stdout=subprocess.DEVNULL,
            stderr=subprocess.DEVNULL,
        )
        return result.returncode == 0

    @staticmethod
    def _escape(text: str) -> str:
        return text.replace("\\", "\\\\").replace('"', '\\"')
