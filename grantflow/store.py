"""
grantflow Ledger Storage

Persists the denial ledger and appends the user-response audit log.

The ledger file is a versioned JSON document:

    {
      "format_version": 1,
      "denials": [
        {"app": "Snapshot", "permission": "CAMERA", "denied_at": "2026-10-19T14:02:11.503Z"},
        ...
      ]
    }

The audit log is append-only CSV, one line per terminal user response:

    app,permission,true|false,MM/DD/YYYY HH:MM

No decision logic lives here.
"""

import csv
import io
import json
import logging
import os
import threading
from abc import ABC, abstractmethod
from pathlib import Path
from typing import List

from pydantic import AwareDatetime, BaseModel, Field, ValidationError

from .models import AuditLogEntry, DenialLedger, DenialRecord
from .util import format_audit_timestamp

LEDGER_FORMAT_VERSION = 1

logger = logging.getLogger(__name__)


class StorageError(Exception):
    """Raised when the ledger or the audit log cannot be written."""

    def __init__(self, operation: str, path: Path, cause: Exception):
        self.operation = operation
        self.path = path
        self.cause = cause
        super().__init__(f"{operation} failed for {path}: {cause}")


# =============================================================================
# FILE FORMAT
# =============================================================================

class DenialRow(BaseModel):
    app: str
    permission: str
    denied_at: AwareDatetime


class LedgerDocument(BaseModel):
    format_version: int = Field(default=LEDGER_FORMAT_VERSION)
    denials: List[DenialRow] = Field(default_factory=list)

    @classmethod
    def from_ledger(cls, ledger: DenialLedger) -> "LedgerDocument":
        return cls(
            denials=[
                DenialRow(app=app, permission=r.permission, denied_at=r.denied_at)
                for app, records in ledger.entries.items()
                for r in records
            ]
        )

    def to_ledger(self) -> DenialLedger:
        ledger = DenialLedger()
        for row in self.denials:
            ledger.add(row.app, DenialRecord(permission=row.permission, denied_at=row.denied_at))
        return ledger


def format_audit_line(entry: AuditLogEntry) -> str:
    """Render one audit entry as a CSV line (with trailing newline)."""
    buf = io.StringIO()
    writer = csv.writer(buf, lineterminator="\n")
    writer.writerow([
        entry.app,
        entry.permission,
        "true" if entry.user_response else "false",
        format_audit_timestamp(entry.timestamp),
    ])
    return buf.getvalue()


def parse_ledger(raw: str, source: str) -> DenialLedger:
    """
    Validate a ledger document. Anything unreadable yields an empty ledger.

    Known weak point: history in an unreadable document is discarded.
    """
    try:
        document = LedgerDocument.model_validate_json(raw)
    except ValidationError as e:
        logger.warning(
            "Discarding unreadable ledger %s (%d error(s))", source, e.error_count()
        )
        return DenialLedger()

    if document.format_version != LEDGER_FORMAT_VERSION:
        logger.warning(
            "Discarding ledger %s with unsupported format_version %s",
            source,
            document.format_version,
        )
        return DenialLedger()

    return document.to_ledger()


# =============================================================================
# STORES
# =============================================================================

class LedgerStore(ABC):
    """
    Abstract interface for denial ledger persistence.

    Implementations must be synchronous: save() returns only after the
    full ledger has been written.
    """

    @abstractmethod
    def load(self) -> DenialLedger:
        """Load the ledger. Missing or unreadable data yields an empty ledger."""
        pass

    @abstractmethod
    def save(self, ledger: DenialLedger) -> None:
        """
        Overwrite the stored ledger.

        Raises:
            StorageError: If the write fails
        """
        pass

    @abstractmethod
    def append_audit_entry(self, entry: AuditLogEntry) -> None:
        """
        Append one user response to the audit log.

        Raises:
            StorageError: If the write fails
        """
        pass


class InMemoryLedgerStore(LedgerStore):
    """
    In-memory ledger store for development/testing.

    Keeps the serialized document, so load() goes through the same
    validation as the file store. A raw document can be seeded at
    construction.
    """

    def __init__(self, document: str = ""):
        self._document: str = document
        self.audit_lines: List[str] = []
        self.save_count = 0
        self._lock = threading.Lock()

    def load(self) -> DenialLedger:
        with self._lock:
            document = self._document
        if not document:
            return DenialLedger()
        return parse_ledger(document, "<memory>")

    def save(self, ledger: DenialLedger) -> None:
        with self._lock:
            self._document = LedgerDocument.from_ledger(ledger).model_dump_json()
            self.save_count += 1

    def append_audit_entry(self, entry: AuditLogEntry) -> None:
        with self._lock:
            self.audit_lines.append(format_audit_line(entry))


class FileLedgerStore(LedgerStore):
    """
    File-backed ledger store.

    The ledger is rewritten wholesale on every save; the audit log is
    opened in append mode for each entry.
    """

    def __init__(self, ledger_path: Path, results_path: Path):
        self.ledger_path = Path(ledger_path)
        self.results_path = Path(results_path)

    @classmethod
    def from_config(cls, config) -> "FileLedgerStore":
        return cls(ledger_path=config.ledger_path, results_path=config.results_path)

    def load(self) -> DenialLedger:
        try:
            raw = self.ledger_path.read_text(encoding="utf-8")
        except FileNotFoundError:
            return DenialLedger()
        except (OSError, UnicodeDecodeError) as e:
            logger.warning("Could not read ledger %s: %s", self.ledger_path, e)
            return DenialLedger()

        return parse_ledger(raw, str(self.ledger_path))

    def save(self, ledger: DenialLedger) -> None:
        payload = LedgerDocument.from_ledger(ledger).model_dump(mode="json")
        try:
            self.ledger_path.parent.mkdir(parents=True, exist_ok=True)
            with open(self.ledger_path, "w", encoding="utf-8") as f:
                json.dump(payload, f, indent=2)
                f.flush()
                os.fsync(f.fileno())
        except OSError as e:
            raise StorageError("save_ledger", self.ledger_path, e) from e

    def append_audit_entry(self, entry: AuditLogEntry) -> None:
        try:
            self.results_path.parent.mkdir(parents=True, exist_ok=True)
            with open(self.results_path, "a", encoding="utf-8", newline="") as f:
                f.write(format_audit_line(entry))
        except OSError as e:
            raise StorageError("append_audit_entry", self.results_path, e) from e
