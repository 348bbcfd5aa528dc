"""Background foreground-window observer.

Polls the title of the focused window on a timer and pushes notifications
onto a one-way queue for whatever presentation layer is listening. It shares
nothing with the request pipeline.
"""

from __future__ import annotations

import queue
import subprocess
import sys
import threading
from dataclasses import dataclass
from typing import Callable, Optional

from axis_kernel.utils.logging import logger

ERROR_KEYWORDS = ("Error", "エラー")
MEDIA_KEYWORDS = ("YouTube", "Netflix")

_WIN_TITLE_SCRIPT = r"""
Add-Type @"
  using System;
  using System.Runtime.InteropServices;
  public class Win32 {
    [DllImport("user32.dll")] public static extern IntPtr GetForegroundWindow();
    [DllImport("user32.dll")] public static extern int GetWindowText(IntPtr hWnd, System.Text.StringBuilder text, int count);
  }
"@
$hwnd = [Win32]::GetForegroundWindow()
$sb = New-Object System.Text.StringBuilder 256
[Win32]::GetWindowText($hwnd, $sb, 256) > $null
$sb.ToString()
"""


@dataclass(frozen=True)
class Notification:
    topic: str
    message: str

    def __str__(self) -> str:
        return f"[{self.topic}] {self.message}"


def active_window_title() -> str:
    """Title of the focused window, or ``""`` when it cannot be read."""
    if sys.platform == "win32":
        cmd = ["powershell", "-NoProfile", "-WindowStyle", "Hidden", "-Command", _WIN_TITLE_SCRIPT]
    else:
        cmd = ["xdotool", "getactivewindow", "getwindowname"]
    try:
        out = subprocess.run(cmd, capture_output=True, text=True, timeout=10)
    except (OSError, subprocess.SubprocessError):
        return ""
    return out.stdout.strip()


class Observer:
    def __init__(
        self,
        channel: "queue.Queue[Notification]",
        title_source: Callable[[], str] = active_window_title,
        *,
        interval: float = 5.0,
        stale_ticks: int = 12,
    ) -> None:
        self.channel = channel
        self.title_source = title_source
        self.interval = interval
        self.stale_ticks = stale_ticks
        self.last_title = ""
        self.same_count = 0
        self._stop = threading.Event()
        self._thread: threading.Thread | None = None

    def _emit(self, topic: str, message: str) -> Notification:
        note = Notification(topic, message)
        self.channel.put(note)
        logger.info("observer_notification", topic=topic, message=message)
        return note

    def poll_once(self) -> Optional[Notification]:
        title = self.title_source()
        if title and title != self.last_title:
            self.last_title = title
            self.same_count = 0
            if any(word in title for word in ERROR_KEYWORDS):
                return self._emit(
                    "Error Detected", f"Looks like an error occurred in '{title}'. Need help?"
                )
            return None
        self.same_count += 1
        if self.same_count == self.stale_ticks and any(w in self.last_title for w in MEDIA_KEYWORDS):
            return self._emit(
                "Suggestion", "You've been watching content for a while. focus_mode check?"
            )
        return None

    def start(self) -> None:
        """Start polling on a daemon thread."""
        if self._thread and self._thread.is_alive():
            return
        self._thread = threading.Thread(target=self._loop, name="axis-observer", daemon=True)
        self._thread.start()

    def stop(self) -> None:
        if self._thread:
            self._stop.set()
            self._thread.join()
            self._thread = None
            self._stop.clear()

    def _loop(self) -> None:
        while not self._stop.wait(self.interval):
            try:
                self.poll_once()
            except Exception as exc:  # noqa: BLE001
                logger.warning("observer_poll_failed", error=str(exc))


__all__ = ["Notification", "Observer", "active_window_title"]
