"""
Ingestion Workflow: normalise -> extract -> review -> commit.

States:
    IDLE -> ANALYZING -> REVIEW_PENDING | FAILED -> IDLE

Every scan gets a sequence number. A scan's result is only applied while its
number is still the latest one, so a superseded scan can never overwrite the
state of a newer one.
"""

import asyncio
import logging
from enum import Enum
from typing import Any, Optional

from receipt_ledger.errors import ConfigurationError, ReceiptLedgerError, WorkflowStateError
from receipt_ledger.gemini.client import GeminiExtractionClient
from receipt_ledger.ledger import LedgerStore
from receipt_ledger.normalizer import DocumentNormalizer, NormalizedDocument, Source
from receipt_ledger.schema import RECEIPT_FIELDS, ExtractedReceipt, ReceiptRecord

logger = logging.getLogger(__name__)


class ScanState(str, Enum):
    IDLE = "idle"
    ANALYZING = "analyzing"
    REVIEW_PENDING = "review_pending"
    FAILED = "failed"


class IngestionWorkflow:
    """
    Single-flight scan pipeline with a review step before anything is saved.

    Provider output is never written to the ledger directly: a successful
    scan produces an editable draft (review) that must be committed.
    """

    def __init__(
        self,
        ledger: LedgerStore,
        client: GeminiExtractionClient,
        api_key: str,
        model_id: str,
        normalizer: Optional[DocumentNormalizer] = None,
    ):
        self.ledger = ledger
        self.client = client
        self.normalizer = normalizer or DocumentNormalizer()
        self.api_key = api_key
        self.model_id = model_id

        self.state = ScanState.IDLE
        self.review: Optional[ReceiptRecord] = None
        self.extraction: Optional[ExtractedReceipt] = None
        self.document: Optional[NormalizedDocument] = None
        self.error: Optional[str] = None
        self.last_exception: Optional[BaseException] = None

        self._sequence = 0
        self._task: Optional[asyncio.Task] = None

    @property
    def sequence(self) -> int:
        return self._sequence

    @property
    def is_busy(self) -> bool:
        return self.state == ScanState.ANALYZING

    def _reset(self, state: ScanState) -> None:
        self.state = state
        self.review = None
        self.extraction = None
        self.document = None
        self.error = None
        self.last_exception = None

    def _begin(self) -> int:
        # starting a scan discards any pending review or error
        self._sequence += 1
        self._reset(ScanState.ANALYZING)
        return self._sequence

    def _is_current(self, seq: int) -> bool:
        if seq != self._sequence:
            logger.debug(f"Discarding stale scan #{seq} (current #{self._sequence})")
            return False
        return True

    async def _run(self, seq: int, source: Source, mime_type: Optional[str]) -> Optional[ReceiptRecord]:
        try:
            if not self.api_key:
                raise ConfigurationError("API key is not set")
            if not self.model_id:
                raise ConfigurationError("Model is not set")

            document = await self.normalizer.normalize_async(source, mime_type)
            if not self._is_current(seq):
                return None
            self.document = document

            extraction = await self.client.extract(
                self.api_key, document.data, document.mime_type, self.model_id
            )
        except (ReceiptLedgerError, OSError) as e:
            if not self._is_current(seq):
                return None
            logger.error(f"Scan #{seq} failed: {e}")
            self.state = ScanState.FAILED
            self.error = str(e)
            self.last_exception = e
            return None

        if not self._is_current(seq):
            return None

        self.extraction = extraction
        self.review = extraction.to_record()
        self.state = ScanState.REVIEW_PENDING
        logger.info(f"Scan #{seq} ready for review")
        return self.review

    async def scan(self, source: Source, mime_type: Optional[str] = None) -> Optional[ReceiptRecord]:
        """
        Run one scan to completion.

        Returns:
            The review draft, or None if the scan failed or was superseded.
            Failures are reported through state/error, not raised.
        """
        seq = self._begin()
        return await self._run(seq, source, mime_type)

    def start_scan(self, source: Source, mime_type: Optional[str] = None) -> "asyncio.Task":
        """Start a scan in the background, cancelling any scan still running."""
        self._cancel_task()
        seq = self._begin()
        self._task = asyncio.create_task(self._run(seq, source, mime_type))
        return self._task

    def _cancel_task(self) -> None:
        if self._task is not None and not self._task.done():
            self._task.cancel()
        self._task = None

    def cancel(self) -> None:
        """Cancel the in-flight scan and go back to IDLE."""
        self._cancel_task()
        self._sequence += 1
        self._reset(ScanState.IDLE)

    def _require(self, state: ScanState, action: str) -> None:
        if self.state != state:
            raise WorkflowStateError(f"Cannot {action} while {self.state.value}")

    def edit_review(self, **changes: Any) -> ReceiptRecord:
        """Update fields of the pending draft."""
        self._require(ScanState.REVIEW_PENDING, "edit")
        unknown = set(changes) - set(RECEIPT_FIELDS)
        if unknown:
            raise ValueError(f"Unknown receipt field(s): {', '.join(sorted(unknown))}")
        self.review = self.review.edited(**changes)
        return self.review

    def commit(self) -> ReceiptRecord:
        """
        Save the draft to the ledger and return to IDLE.

        A PersistenceError propagates and the draft stays pending.
        """
        self._require(ScanState.REVIEW_PENDING, "commit")
        stored = self.ledger.append(self.review)
        self._reset(ScanState.IDLE)
        return stored

    def abandon(self) -> None:
        """Drop a pending review or a failure message."""
        if self.state == ScanState.ANALYZING:
            raise WorkflowStateError("Cannot abandon while analyzing; use cancel()")
        self._reset(ScanState.IDLE)
