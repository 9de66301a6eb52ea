"""JSON run report output."""

from __future__ import annotations

import os
from pathlib import Path

from wsus_groomer.models import RunReport
from wsus_groomer.platform import get_hostname


def generate(report: RunReport, output_dir: str) -> str:
    """Serialize the run report to a JSON file.

    Args:
        report: The run report to serialize.
        output_dir: Directory to write the report file.

    Returns:
        Path to the generated JSON file.
    """
    os.makedirs(output_dir, exist_ok=True)

    timestamp = report.run_start.strftime("%Y%m%d_%H%M%S")
    suffix = "_dry-run" if report.dry_run else ""
    filename = f"wsus-groomer_{get_hostname()}_{timestamp}{suffix}.json"
    filepath = Path(output_dir) / filename

    json_str = report.model_dump_json(indent=2)
    filepath.write_text(json_str, encoding="utf-8")

    return str(filepath)
