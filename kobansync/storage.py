"""Local storage for invoice PDFs fetched from Koban."""

from __future__ import annotations

import os
from pathlib import Path


def save_invoice_pdf(directory: str | Path, invoice_guid: str, content: bytes) -> Path:
    """Write an invoice PDF into a directory only the service user can read.

    Returns the absolute path of the written file. An existing file for the
    same invoice is overwritten.
    """
    protected_dir = Path(directory).expanduser().resolve()
    if not protected_dir.exists():
        protected_dir.mkdir(parents=True, mode=0o700)

    safe_guid = "".join(c for c in invoice_guid if c.isalnum() or c in "-_")
    file_path = protected_dir / f"koban-invoice-{safe_guid}.pdf"
    file_path.write_bytes(content)
    os.chmod(file_path, 0o600)
    return file_path
