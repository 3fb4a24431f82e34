from __future__ import annotations

import hashlib
import logging
import re
from dataclasses import dataclass
from pathlib import Path

from app.core.config import get_settings
from app.core.errors import UpstreamFailure, ValidationError


logger = logging.getLogger("ledger.attachments")

_UNSAFE_CHARS = re.compile(r"[^A-Za-z0-9._-]+")


@dataclass(frozen=True)
class StoredAttachment:
    url: str
    file_name: str
    size_bytes: int
    sha256: str


def safe_file_name(file_name: str | None) -> str:
    name = Path(file_name or "").name
    cleaned = _UNSAFE_CHARS.sub("_", name).strip("._")
    return cleaned[:120] or "attachment"


class LocalAttachmentStore:
    """Content-addressed storage on the local filesystem.

    Files are named ``<sha256 prefix>-<sanitised name>`` under ``root`` and
    exposed below ``base_url``. Ledger rows only ever keep the returned URL.
    """

    def __init__(self, root: str | Path, *, base_url: str, max_bytes: int) -> None:
        self.root = Path(root)
        self.base_url = base_url.rstrip("/")
        self.max_bytes = max_bytes

    def save(self, file_name: str | None, content: bytes) -> StoredAttachment:
        if not content:
            raise ValidationError("Attachment is empty.")
        if len(content) > self.max_bytes:
            raise ValidationError(f"Attachment exceeds the {self.max_bytes} byte limit.")

        digest = hashlib.sha256(content).hexdigest()
        stored_name = f"{digest[:16]}-{safe_file_name(file_name)}"
        path = self.root / stored_name
        try:
            self.root.mkdir(parents=True, exist_ok=True)
            if not path.exists():
                path.write_bytes(content)
        except OSError as exc:
            logger.exception("Attachment write failed for %s", stored_name)
            raise UpstreamFailure("Attachment storage is unavailable.") from exc
        return StoredAttachment(
            url=f"{self.base_url}/{stored_name}",
            file_name=stored_name,
            size_bytes=len(content),
            sha256=digest,
        )


def get_attachment_store() -> LocalAttachmentStore:
    settings = get_settings()
    return LocalAttachmentStore(
        settings.attachments_dir,
        base_url=settings.attachments_base_url,
        max_bytes=settings.max_attachment_bytes,
    )
