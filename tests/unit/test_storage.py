import asyncio

import pytest

from kobansync.storage import save_invoice_pdf
from kobansync.utils.retry import compute_backoff, sleep_before_retry


def test_pdf_is_written_privately(tmp_path):
    directory = tmp_path / "protected"

    path = save_invoice_pdf(directory, "abc-123/../x", b"%PDF")

    assert path.name == "koban-invoice-abc-123x.pdf"
    assert path.parent == directory.resolve()
    assert path.read_bytes() == b"%PDF"
    assert path.stat().st_mode & 0o777 == 0o600
    assert directory.stat().st_mode & 0o777 == 0o700


def test_backoff_grows_exponentially():
    assert [compute_backoff(n) for n in (1, 2, 3)] == [2.0, 4.0, 8.0]
    assert compute_backoff(1, base=0) == 0
    assert 3.0 <= compute_backoff(1, base=3.0, jitter=1.0) <= 4.0


@pytest.mark.asyncio
async def test_zero_backoff_does_not_sleep():
    await asyncio.wait_for(sleep_before_retry(1, base=0), timeout=0.1)
