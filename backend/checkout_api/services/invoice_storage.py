"""
Durable storage for invoice PDFs on the local filesystem.
"""
import hashlib
import os
import re
import tempfile
from pathlib import Path
from typing import Optional

from checkout_api.core.config import settings
from checkout_api.core.logging import get_logger

logger = get_logger(__name__)

SAFE_FILE_NAME = re.compile(r"^[A-Za-z0-9][A-Za-z0-9._-]*\.pdf$")


def is_safe_file_name(file_name: str) -> bool:
    """Only bare ``*.pdf`` names without traversal sequences are served."""
    if ".." in file_name or "/" in file_name or "\\" in file_name:
        return False
    return bool(SAFE_FILE_NAME.match(file_name))


def invoice_file_name(order_id: str, content: bytes) -> str:
    """Content-addressed name: same order and bytes give the same file."""
    digest = hashlib.sha256(content).hexdigest()[:12]
    safe_order_id = re.sub(r"[^A-Za-z0-9_-]", "_", order_id)
    return f"invoice-{safe_order_id}-{digest}.pdf"


def invoice_public_path(file_name: str) -> str:
    return f"/invoices/{file_name}"


class InvoiceStorage:
    """Writes invoice files atomically under a single directory."""

    def __init__(self, directory: Optional[str | Path] = None) -> None:
        self.directory = Path(directory or settings.invoices_dir)

    def ensure_directory(self) -> None:
        self.directory.mkdir(parents=True, exist_ok=True)

    def write(self, file_name: str, content: bytes) -> Path:
        """Write via temp file + rename so readers never see a partial PDF."""
        if not is_safe_file_name(file_name):
            raise ValueError(f"Refusing to store invoice under {file_name!r}")
        self.ensure_directory()
        target = self.directory / file_name

        fd, tmp_path = tempfile.mkstemp(dir=self.directory, suffix=".part")
        try:
            with os.fdopen(fd, "wb") as handle:
                handle.write(content)
                handle.flush()
                os.fsync(handle.fileno())
            os.replace(tmp_path, target)
        except BaseException:
            if os.path.exists(tmp_path):
                os.unlink(tmp_path)
            raise

        logger.debug("Invoice written", file_name=file_name, size=len(content))
        return target

    def resolve(self, file_name: str) -> Optional[Path]:
        """Path of a stored invoice, or None if the name is unsafe or missing."""
        if not is_safe_file_name(file_name):
            return None
        path = self.directory / file_name
        return path if path.is_file() else None

    def exists(self, file_name: Optional[str]) -> bool:
        return bool(file_name) and self.resolve(file_name) is not None
