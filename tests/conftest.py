"""Shared fixtures for tests."""

import pytest

from helpers import FAKE_PNG, FlakyStorage
from receipt_ledger.ledger import LedgerStore
from receipt_ledger.schema import ReceiptRecord
from receipt_ledger.storage import MemoryStorage


@pytest.fixture(autouse=True)
def clean_env(monkeypatch):
    """Keep the developer's shell config out of tests."""
    for name in ("GEMINI_API_KEY", "GEMINI_MODEL", "GEMINI_BASE_URL", "GEMINI_TIMEOUT", "RECEIPT_LEDGER_DATA"):
        monkeypatch.delenv(name, raising=False)


def _draw_receipt(c, height, lines):
    c.setFont("Helvetica", 12)
    y = height - 72
    for line in lines:
        c.drawString(72, y, line)
        y -= 18


@pytest.fixture
def sample_receipt_pdf(tmp_path):
    """Single-page receipt PDF (US letter, 612x792pt)."""
    from reportlab.lib.pagesizes import letter
    from reportlab.pdfgen import canvas

    pdf_path = tmp_path / "receipt.pdf"
    c = canvas.Canvas(str(pdf_path), pagesize=letter)
    _draw_receipt(
        c,
        letter[1],
        ["STARBUCKS COFFEE", "2024/01/25 08:41", "Latte      550", "Sandwich   700", "TOTAL     1250"],
    )
    c.save()
    return pdf_path


@pytest.fixture
def multi_page_pdf(tmp_path):
    """Three-page PDF; only page 1 should ever be rendered."""
    from reportlab.lib.pagesizes import letter
    from reportlab.pdfgen import canvas

    pdf_path = tmp_path / "statement.pdf"
    c = canvas.Canvas(str(pdf_path), pagesize=letter)
    for page in range(1, 4):
        _draw_receipt(c, letter[1], [f"Page {page}"])
        c.showPage()
    c.save()
    return pdf_path


@pytest.fixture
def sample_png(tmp_path):
    path = tmp_path / "receipt.png"
    path.write_bytes(FAKE_PNG)
    return path


@pytest.fixture
def storage():
    return MemoryStorage()


@pytest.fixture
def flaky_storage():
    return FlakyStorage()


@pytest.fixture
def ledger(storage):
    return LedgerStore(storage)


@pytest.fixture
def coffee():
    return ReceiptRecord(date="2024/01/25", amount=1250, payee="Starbucks", description="coffee")


@pytest.fixture
def books():
    return ReceiptRecord(date="2024/02/03", amount=2500, payee="Kinokuniya", description="books")
