"""
Per-request audit trail.

Each audit call owns one AuditTrail; entries are returned inside the
AuditReport and also mirrored to the module logger.
"""

from __future__ import annotations

import logging
from typing import Any, Dict, List, Optional

from billguard.auditor.models import ExtractionLogEntry

logger = logging.getLogger(__name__)


class AuditTrail:
    """Ordered log of the steps taken while auditing one bill."""

    def __init__(self):
        self.entries: List[ExtractionLogEntry] = []

    def log(
        self,
        phase: str,
        action: str,
        details: Optional[Dict[str, Any]] = None,
        success: bool = True,
    ) -> ExtractionLogEntry:
        entry = ExtractionLogEntry(
            phase=phase,
            action=action,
            details=details or {},
            success=success,
        )
        self.entries.append(entry)

        marker = "✓" if success else "✗"
        level = logging.INFO if success else logging.WARNING
        logger.log(level, f"[{phase}] {marker} {action}")
        return entry

    def failures(self) -> List[ExtractionLogEntry]:
        return [e for e in self.entries if not e.success]

    def __len__(self) -> int:
        return len(self.entries)

    def __iter__(self):
        return iter(self.entries)
