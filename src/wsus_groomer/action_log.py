"""Append-only, timestamped action log.

One human-readable line per decision or action. The handler flushes every
record, so after a fatal error the file reflects exactly what was done.
"""

from __future__ import annotations

import logging
from pathlib import Path

from wsus_groomer.models import ActionRecord, Decision, DecisionKind, Phase, UpdateRecord

_FORMAT = "%(asctime)s %(levelname)s %(message)s"


def setup_action_logger(
    log_file: str | Path | None,
    name: str = "wsus_groomer.actions",
    verbose: bool = False,
) -> logging.Logger:
    """Return a logger that appends to log_file.

    With log_file None the logger has no file handler and records go
    nowhere; useful for tests and the status command. verbose also writes
    the SKIP line of every update left untouched.
    """
    logger = logging.getLogger(name)
    logger.setLevel(logging.DEBUG if verbose else logging.INFO)
    logger.propagate = False

    for handler in list(logger.handlers):
        logger.removeHandler(handler)
        handler.close()

    if log_file:
        path = Path(log_file)
        if path.parent != Path(""):
            path.parent.mkdir(parents=True, exist_ok=True)
        file_handler = logging.FileHandler(path, mode="a", encoding="utf-8")
        file_handler.setFormatter(logging.Formatter(_FORMAT))
        logger.addHandler(file_handler)
    else:
        logger.addHandler(logging.NullHandler())

    return logger


def format_action(record: ActionRecord) -> str:
    """Render an ActionRecord as a single log line."""
    parts = [f"[{record.phase.value}]", record.decision.label().upper()]
    if record.dry_run:
        parts.append("[dry-run]")
    parts.append(f"{record.update_id} {record.title!r}")
    if not record.success:
        parts.append(f"FAILED: {record.error}")
    return " ".join(parts)


def format_decision(phase: Phase, update: UpdateRecord, decision: Decision) -> str:
    """Render a decision that made no server call as a single log line."""
    return f"[{phase.value}] {decision.label().upper()} {update.update_id} {update.title!r}"


class ActionLog:
    """Writes ActionRecords and run milestones to the action logger."""

    def __init__(self, logger: logging.Logger):
        self.logger = logger

    def action(self, record: ActionRecord) -> None:
        if record.success:
            self.logger.info(format_action(record))
        else:
            self.logger.error(format_action(record))

    def decision(self, phase: Phase, update: UpdateRecord, decision: Decision) -> None:
        level = logging.DEBUG if decision.kind == DecisionKind.SKIP else logging.INFO
        self.logger.log(level, format_decision(phase, update, decision))

    def note(self, message: str) -> None:
        self.logger.info(message)

    def fatal(self, message: str) -> None:
        self.logger.error(f"ABORTED: {message}")

    def close(self) -> None:
        for handler in list(self.logger.handlers):
            handler.flush()
            handler.close()
            self.logger.removeHandler(handler)
