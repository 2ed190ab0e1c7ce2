"""
LedgerStore: the persisted, newest-first list of accepted receipts.

Every mutation writes the full snapshot through the storage backend before
the in-memory list changes, so a failed write leaves both in agreement.
"""

import datetime as dt
import logging
import uuid
from decimal import Decimal
from pathlib import Path
from typing import Iterator, List, Optional, Tuple, Union

from pydantic import ValidationError

from receipt_ledger.errors import PersistenceError, RecordNotFoundError
from receipt_ledger.schema import ReceiptRecord, format_amount
from receipt_ledger.storage import StorageBackend

logger = logging.getLogger(__name__)

LEDGER_KEY = "receipt_history"

CSV_HEADER = ["日付", "金額", "支払先", "摘要"]
CSV_TOTAL_LABEL = "合計"
CSV_BOM = b"\xef\xbb\xbf"

RecordRef = Union[ReceiptRecord, str]


def _new_id() -> str:
    return uuid.uuid4().hex


def export_filename(today: Optional[dt.date] = None) -> str:
    today = today or dt.date.today()
    return f"receipt_history_{today.isoformat()}.csv"


class LedgerStore:
    """Ordered receipt ledger backed by a StorageBackend."""

    def __init__(self, storage: StorageBackend, key: str = LEDGER_KEY):
        self._storage = storage
        self._key = key
        self._records: List[ReceiptRecord] = self._load()

    def _load(self) -> List[ReceiptRecord]:
        raw = self._storage.get(self._key)
        if raw is None:
            return []
        if not isinstance(raw, list):
            raise PersistenceError(f"Stored ledger '{self._key}' is not a list")

        records = []
        migrated = False
        for item in raw:
            if not isinstance(item, dict):
                logger.warning(f"Skipping malformed ledger entry: {item!r}")
                migrated = True
                continue
            try:
                record = ReceiptRecord(**item)
            except ValidationError as e:
                logger.warning(f"Skipping invalid ledger entry {item!r}: {e.error_count()} error(s)")
                migrated = True
                continue
            if not record.id or "purpose" in item:
                record = record.edited(id=record.id or _new_id())
                migrated = True
            records.append(record)

        if migrated:
            # ids must survive restarts for edit/delete by id
            logger.info(f"Migrating {len(records)} ledger record(s) to current format")
            self._persist(records)
        return records

    def _persist(self, records: List[ReceiptRecord]) -> None:
        self._storage.set(self._key, [r.to_storage() for r in records])

    def _commit(self, records: List[ReceiptRecord]) -> None:
        self._persist(records)
        self._records = records

    def _index_of(self, target: RecordRef) -> int:
        record_id = target.id if isinstance(target, ReceiptRecord) else target
        for i, record in enumerate(self._records):
            if record.id == record_id:
                return i
        raise RecordNotFoundError(str(record_id))

    @property
    def records(self) -> Tuple[ReceiptRecord, ...]:
        return tuple(self._records)

    def __len__(self) -> int:
        return len(self._records)

    def __iter__(self) -> Iterator[ReceiptRecord]:
        return iter(tuple(self._records))

    def get(self, record_id: str) -> ReceiptRecord:
        return self._records[self._index_of(record_id)]

    def append(self, record: ReceiptRecord) -> ReceiptRecord:
        """Store a new record at the front and return it with its id."""
        stored = record.edited(id=_new_id())
        self._commit([stored] + self._records)
        logger.info(f"Appended receipt {stored.id} ({stored.payee!r}, {stored.amount})")
        return stored

    def replace(self, target: RecordRef, new_record: ReceiptRecord) -> ReceiptRecord:
        """Swap the record in place; id and position are kept."""
        index = self._index_of(target)
        stored = new_record.edited(id=self._records[index].id)
        records = list(self._records)
        records[index] = stored
        self._commit(records)
        return stored

    def remove(self, target: RecordRef) -> ReceiptRecord:
        index = self._index_of(target)
        records = list(self._records)
        removed = records.pop(index)
        self._commit(records)
        logger.info(f"Removed receipt {removed.id}")
        return removed

    def clear(self) -> None:
        self._commit([])
        logger.info("Cleared ledger")

    def total(self) -> float:
        # Decimal keeps 0.1 + 0.2 at 0.3
        return float(sum((Decimal(str(record.amount)) for record in self._records), Decimal(0)))

    def export_csv(self) -> bytes:
        """
        Export the ledger as UTF-8 CSV with a BOM.

        Rows follow ledger order and end with a total row:
            日付,金額,支払先,摘要
            2024/01/25,1250,Starbucks,coffee
            合計,1250,,

        Fields are joined as-is with no quoting, so a comma inside a field
        shifts the columns of that row.
        """
        rows = [CSV_HEADER]
        for record in self._records:
            rows.append([record.date, format_amount(record.amount), record.payee, record.description])
        rows.append([CSV_TOTAL_LABEL, format_amount(self.total()), "", ""])
        text = "".join(",".join(row) + "\n" for row in rows)
        return CSV_BOM + text.encode("utf-8")

    def write_csv(self, directory: Path, today: Optional[dt.date] = None) -> Path:
        out_path = Path(directory) / export_filename(today)
        try:
            out_path.parent.mkdir(parents=True, exist_ok=True)
            out_path.write_bytes(self.export_csv())
        except OSError as e:
            raise PersistenceError(f"Cannot write {out_path}: {e}") from e
        return out_path
