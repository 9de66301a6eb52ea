"""Platform detection and tool availability."""

from __future__ import annotations

import shutil
import socket
import sys


def is_windows() -> bool:
    """Return True if running on Windows."""
    return sys.platform == "win32"


def get_hostname() -> str:
    """Return the hostname of the machine running the tool."""
    return socket.gethostname()


def get_powershell_path() -> str | None:
    """Return path to PowerShell executable, or None if not found.

    Prefers Windows PowerShell 5.1 over pwsh: the UpdateServices
    administration assembly is a .NET Framework library and does not load
    under PowerShell 7.
    """
    for name in ("powershell.exe", "powershell", "pwsh"):
        path = shutil.which(name)
        if path:
            return path
    return None
