"""
Rokkam Money (RKM) - Audit Log
Version: 1.0.0

Append-only record of every ledger transaction, newest entry first.
Each entry carries an HMAC-SHA256 of its canonical fields chained to the
previous entry's hash, so edits or reordering are detectable.
"""

from dataclasses import dataclass, field
from datetime import datetime
from typing import Dict, List, Tuple
import hmac
import json
import uuid

from rkm_enforcement_v1 import (
    SYSTEM_SECRET,
    AUDIT_ID_PREFIX,
    logger
)

GENESIS_HASH = "0x" + "0" * 64

# ============================================
# DATA MODELS
# ============================================

def compute_entry_hash(
    entry_id: str,
    event: str,
    detail: str,
    timestamp: datetime,
    previous_hash: str
) -> str:
    """Keyed hash over the entry's canonical serialized fields."""
    payload = json.dumps(
        {
            'id': entry_id,
            'event': event,
            'detail': detail,
            'timestamp': timestamp.isoformat(),
            'previous_hash': previous_hash,
        },
        sort_keys=True,
        separators=(',', ':'),
        ensure_ascii=False,
    )
    return "0x" + hmac.new(SYSTEM_SECRET, payload.encode('utf-8'), 'sha256').hexdigest()

@dataclass(frozen=True)
class AuditEntry:
    """Single audit log entry."""
    id: str
    hash: str
    event: str
    detail: str
    timestamp: datetime = field(default_factory=datetime.now)
    previous_hash: str = GENESIS_HASH

    def verify_hash(self) -> bool:
        expected = compute_entry_hash(
            self.id, self.event, self.detail, self.timestamp, self.previous_hash
        )
        return hmac.compare_digest(self.hash, expected)

    def to_dict(self) -> Dict:
        return {
            'id': self.id,
            'hash': self.hash,
            'event': self.event,
            'detail': self.detail,
            'timestamp': self.timestamp.isoformat(),
            'previous_hash': self.previous_hash
        }

# ============================================
# AUDIT LOG
# ============================================

class AuditLog:
    """Append-only audit log, read newest-first."""

    def __init__(self):
        # Stored oldest-first; exposed newest-first
        self._entries: List[AuditEntry] = []
        self._ids = set()

    def _new_id(self) -> str:
        while True:
            entry_id = f"{AUDIT_ID_PREFIX}-{uuid.uuid4().int % 10**9:09d}"
            if entry_id not in self._ids:
                return entry_id

    def record(self, event: str, detail: str) -> AuditEntry:
        """Append one entry and return it."""
        entry_id = self._new_id()
        timestamp = datetime.now()
        previous_hash = self._entries[-1].hash if self._entries else GENESIS_HASH

        entry = AuditEntry(
            id=entry_id,
            hash=compute_entry_hash(entry_id, event, detail, timestamp, previous_hash),
            event=event,
            detail=detail,
            timestamp=timestamp,
            previous_hash=previous_hash
        )

        self._entries.append(entry)
        self._ids.add(entry_id)

        logger.info(f"[AUDIT] {entry.event}: {entry.detail} ({entry.id}, {entry.hash[:12]}...)")
        return entry

    @property
    def entries(self) -> Tuple[AuditEntry, ...]:
        """Entries newest-first."""
        return tuple(reversed(self._entries))

    @property
    def head(self) -> AuditEntry:
        return self._entries[-1]

    def __len__(self) -> int:
        return len(self._entries)

    def verify_chain_integrity(self) -> bool:
        """Recompute every hash and check each link to its predecessor."""
        previous_hash = GENESIS_HASH
        for entry in self._entries:
            if entry.previous_hash != previous_hash or not entry.verify_hash():
                logger.error(f"[AUDIT] Integrity check failed at {entry.id}")
                return False
            previous_hash = entry.hash
        return True
