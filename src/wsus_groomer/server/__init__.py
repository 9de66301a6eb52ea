"""WSUS administrative API boundary."""

from wsus_groomer.server.base import WsusServer
from wsus_groomer.server.powershell_server import PowerShellWsusServer

__all__ = ["PowerShellWsusServer", "WsusServer"]
