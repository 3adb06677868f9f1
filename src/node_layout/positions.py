"""Second phase of every layout: writing computed positions onto node handles.

Handles belong to the collaborator and may have been destroyed between
``compute_*`` and ``apply_positions``; such handles are skipped and counted,
never fatal.
"""

from __future__ import annotations

import logging
from collections.abc import Hashable, Mapping
from dataclasses import dataclass, field

from node_layout.errors import InvalidHandleError
from node_layout.layout.types import Vec2

logger = logging.getLogger(__name__)


@dataclass
class ApplyReport:
    """Outcome of a write-back pass."""

    applied: int = 0
    skipped: int = 0
    skipped_handles: list[Hashable] = field(default_factory=list)


def is_valid_handle(handle: object) -> bool:
    """False for ``None`` and for handles whose ``is_valid`` is falsy."""
    if handle is None:
        return False
    return bool(getattr(handle, "is_valid", True))


def apply_positions(positions: Mapping[Hashable, Vec2]) -> ApplyReport:
    """Write each position onto its handle via ``handle.set_position(x, y)``."""
    report = ApplyReport()
    for handle, pos in positions.items():
        if not is_valid_handle(handle):
            _skip(report, handle, "handle is no longer valid")
            continue
        try:
            handle.set_position(pos.x, pos.y)
        except InvalidHandleError as exc:
            _skip(report, handle, str(exc) or "handle raised InvalidHandleError")
            continue
        report.applied += 1
    if report.skipped:
        logger.debug("applied %d positions, skipped %d invalid handles", report.applied, report.skipped)
    return report


def _skip(report: ApplyReport, handle: Hashable, reason: str) -> None:
    logger.debug("skipping %r: %s", handle, reason)
    report.skipped += 1
    report.skipped_handles.append(handle)
