"""PowerShell subprocess runner with JSON output parsing."""

from __future__ import annotations

import base64
import json
import subprocess
from dataclasses import dataclass, field
from typing import Any

from wsus_groomer.platform import get_powershell_path


@dataclass
class PowerShellResult:
    """Result of a PowerShell script execution."""
    success: bool
    output: str
    json_output: Any = field(default=None)
    error: str | None = None
    return_code: int = 0

    def as_list(self) -> list:
        """Return json_output as a list.

        ConvertTo-Json emits a bare object for a single-item pipeline and
        nothing at all for an empty one.
        """
        if self.json_output is None:
            return []
        if isinstance(self.json_output, list):
            return self.json_output
        return [self.json_output]


def ps_quote(value: object) -> str:
    """Render a value as a single-quoted PowerShell string literal."""
    return "'" + str(value).replace("'", "''") + "'"


def encode_command(script: str) -> str:
    """Encode a script for powershell -EncodedCommand (base64 of UTF-16LE)."""
    return base64.b64encode(script.encode("utf-16-le")).decode("ascii")


def run_ps(
    script: str,
    timeout: int = 60,
    as_json: bool = True,
) -> PowerShellResult:
    """Execute a PowerShell script and return structured result.

    The script is passed with -EncodedCommand so quoting survives the trip
    through the process command line. Terminating errors inside the script
    set a non-zero exit code.

    Args:
        script: PowerShell script text.
        timeout: Timeout in seconds.
        as_json: If True, pipes the script output through
                 'ConvertTo-Json -Depth 6 -Compress' and parses it.

    Returns:
        PowerShellResult with parsed output and error information.
    """
    ps_path = get_powershell_path()
    if ps_path is None:
        return PowerShellResult(
            success=False,
            output="",
            error="PowerShell not found on this system",
            return_code=-1,
        )

    body = script
    if as_json:
        body = f"& {{ {script} }} | ConvertTo-Json -Depth 6 -Compress"
    full_script = f"$ErrorActionPreference = 'Stop'\ntry {{\n{body}\n}} catch {{\n[Console]::Error.WriteLine($_.Exception.Message); exit 1\n}}"

    args = [
        ps_path,
        "-NoProfile",
        "-NonInteractive",
        "-ExecutionPolicy", "Bypass",
        "-EncodedCommand",
        encode_command(full_script),
    ]

    try:
        proc = subprocess.run(
            args,
            capture_output=True,
            timeout=timeout,
            text=True,
            encoding="utf-8",
            errors="replace",
        )
    except subprocess.TimeoutExpired:
        return PowerShellResult(
            success=False,
            output="",
            error=f"PowerShell command timed out after {timeout} seconds",
            return_code=-1,
        )
    except FileNotFoundError:
        return PowerShellResult(
            success=False,
            output="",
            error=f"PowerShell executable not found: {ps_path}",
            return_code=-1,
        )
    except OSError as e:
        return PowerShellResult(
            success=False,
            output="",
            error=f"OS error executing PowerShell: {e}",
            return_code=-1,
        )

    stdout = proc.stdout.strip()
    # PowerShell sometimes emits UTF-8 BOM
    if stdout.startswith("\ufeff"):
        stdout = stdout[1:]

    stderr = proc.stderr.strip() if proc.stderr else None

    if proc.returncode != 0:
        return PowerShellResult(
            success=False,
            output=stdout,
            error=stderr or f"PowerShell exited with code {proc.returncode}",
            return_code=proc.returncode,
        )

    json_output = None
    if as_json and stdout:
        try:
            json_output = json.loads(stdout)
        except json.JSONDecodeError as e:
            return PowerShellResult(
                success=False,
                output=stdout,
                error=f"Failed to parse PowerShell JSON output: {e}",
                return_code=proc.returncode,
            )

    return PowerShellResult(
        success=True,
        output=stdout,
        json_output=json_output,
        error=stderr if stderr else None,
        return_code=proc.returncode,
    )
