"""Desktop capabilities invoked by the action interpreter.

The interpreter only depends on the :class:`Capabilities` protocol; the
default :class:`DesktopCapabilities` talks to the local machine. Result
strings are human-readable and go straight into the action transcript.
"""

from __future__ import annotations

import base64
import io
import subprocess
import sys
import time
from dataclasses import asdict, dataclass
from typing import Dict, List, Optional, Protocol, Tuple

import psutil

from axis_kernel.errors import CapabilityError
from axis_kernel.utils.logging import logger

APP_ALIASES: Dict[str, Tuple[str, str]] = {
    "calc": ("calc", "Calculator"),
    "calculator": ("calc", "Calculator"),
    "電卓": ("calc", "Calculator"),
    "notepad": ("notepad", "Notepad"),
    "memo": ("notepad", "Notepad"),
    "メモ帳": ("notepad", "Notepad"),
    "explorer": ("explorer", "File Explorer"),
    "folder": ("explorer", "File Explorer"),
    "cmd": ("cmd", "Terminal"),
    "terminal": ("cmd", "Terminal"),
    "taskmgr": ("taskmgr", "Task Manager"),
}

KEY_NAMES: Dict[str, str] = {
    "enter": "enter",
    "return": "enter",
    "tab": "tab",
    "space": "space",
    "backspace": "backspace",
    "windows": "win",
    "super": "win",
    "meta": "win",
    "escape": "esc",
    "esc": "esc",
}

_POWERSHELL = ["powershell", "-NoProfile", "-WindowStyle", "Hidden", "-Command"]


@dataclass
class VitalStats:
    cpu_usage: float
    memory_used: int
    memory_total: int
    battery_level: Optional[float]
    is_charging: Optional[bool]

    def to_dict(self) -> dict:
        return asdict(self)


class Capabilities(Protocol):
    def launch_app(self, name: str) -> str: ...

    def type_text(self, text: str, target: Optional[str] = None) -> str: ...

    def press_key(self, name: str) -> str: ...

    def capture_screenshot(self) -> str: ...

    def list_running_apps(self) -> List[str]: ...


def _powershell(script: str) -> subprocess.CompletedProcess:
    return subprocess.run([*_POWERSHELL, script], capture_output=True, text=True, timeout=30)


class DesktopCapabilities:
    """Capabilities backed by subprocess, pyautogui, Pillow and psutil."""

    def __init__(self, focus_delay: float = 1.0, type_delay: float = 2.0) -> None:
        self.focus_delay = focus_delay
        self.type_delay = type_delay

    # -- applications --------------------------------------------------
    def _launch(self, command: str, label: str) -> str:
        try:
            if sys.platform == "win32":
                subprocess.Popen(["cmd", "/C", "start", "", command])
            else:
                subprocess.Popen([command], stdout=subprocess.DEVNULL, stderr=subprocess.DEVNULL)
        except OSError as exc:
            return f"Error launching {label}: {exc}"
        return f"Success: Launched {label}."

    def launch_app(self, name: str) -> str:
        request = name.strip()
        alias = APP_ALIASES.get(request.lower())
        if alias:
            return self._launch(*alias)
        if sys.platform != "win32":
            return self._launch(request, request)
        script = (
            f"$app = Get-StartApps | Where-Object {{ $_.Name -like '*{request}*' }} | Select-Object -First 1; "
            "if ($app) { Write-Output $app.AppID } else { Write-Output 'NOT_FOUND' }"
        )
        try:
            app_id = _powershell(script).stdout.strip()
        except (OSError, subprocess.SubprocessError) as exc:
            return f"Error executing shell search: {exc}"
        if not app_id or app_id == "NOT_FOUND":
            return f"Failed: Application '{request}' not found"
        try:
            subprocess.Popen(["explorer", f"shell:AppsFolder\\{app_id}"])
        except OSError as exc:
            return f"Error: Found ID {app_id} but failed to launch. {exc}"
        return f"Success: Launched '{request}' (ID: {app_id})."

    # -- keyboard ------------------------------------------------------
    def _focus(self, target: str) -> None:
        if sys.platform == "win32":
            script = (
                "$ws = New-Object -ComObject WScript.Shell; "
                f"$p = Get-Process | Where-Object {{ $_.MainWindowTitle -like '*{target}*' "
                f"-or $_.ProcessName -like '*{target}*' }} | Select-Object -First 1; "
                "if ($p) { $ws.AppActivate($p.Id) }"
            )
            _powershell(script)
        else:
            subprocess.run(["wmctrl", "-a", target], capture_output=True, timeout=10)

    def type_text(self, text: str, target: Optional[str] = None) -> str:
        import pyautogui  # needs a display; imported on use

        if target:
            try:
                self._focus(target)
            except (OSError, subprocess.SubprocessError) as exc:
                logger.warning("focus_failed", target=target, error=str(exc))
            time.sleep(self.focus_delay)
        else:
            time.sleep(self.type_delay)
        try:
            pyautogui.write(text)
        except pyautogui.PyAutoGUIException as exc:
            return f"Error typing text: {exc}"
        if target:
            return f"Focused '{target}' and Typed: '{text}'"
        return f"Typed: '{text}'"

    def press_key(self, name: str) -> str:
        key_name = name.strip()
        key = KEY_NAMES.get(key_name.lower())
        if key is None:
            return "Error: Unknown key."
        import pyautogui

        time.sleep(0.3)
        try:
            pyautogui.press(key)
        except pyautogui.PyAutoGUIException as exc:
            return f"Error: {exc}"
        return f"Pressed: [{key_name}]"

    # -- screen --------------------------------------------------------
    def capture_screenshot(self) -> str:
        """Return the primary screen as a base64 PNG."""
        from PIL import ImageGrab

        try:
            image = ImageGrab.grab()
        except OSError as exc:
            raise CapabilityError(f"Screen capture failed: {exc}") from exc
        buffer = io.BytesIO()
        image.save(buffer, format="PNG")
        return base64.b64encode(buffer.getvalue()).decode("ascii")

    def list_running_apps(self) -> List[str]:
        if sys.platform == "win32":
            script = (
                "Get-Process | Where-Object { $_.MainWindowTitle -ne '' } | "
                "Select-Object -ExpandProperty MainWindowTitle"
            )
            try:
                output = _powershell(script).stdout
            except (OSError, subprocess.SubprocessError):
                return []
            return [line.strip() for line in output.splitlines() if line.strip()]
        names = set()
        for proc in psutil.process_iter(["name"]):
            name = proc.info.get("name")
            if name:
                names.add(name)
        return sorted(names)


def vital_stats() -> VitalStats:
    cpu = psutil.cpu_percent(interval=0.1)
    mem = psutil.virtual_memory()
    battery = psutil.sensors_battery() if hasattr(psutil, "sensors_battery") else None
    return VitalStats(
        cpu_usage=cpu,
        memory_used=mem.used,
        memory_total=mem.total,
        battery_level=battery.percent if battery else None,
        is_charging=battery.power_plugged if battery else None,
    )


__all__ = ["Capabilities", "DesktopCapabilities", "VitalStats", "vital_stats", "APP_ALIASES", "KEY_NAMES"]
