from __future__ import annotations

import logging
import re
from dataclasses import dataclass, field
from email import policy
from email.parser import BytesParser
from email.utils import getaddresses
from pathlib import Path
from typing import Any

from .errors import DocumentError
from .utils import normalize_whitespace, utc_now_iso

logger = logging.getLogger(__name__)

TEXT_EXTENSIONS = ("txt", "text", "md")
EMAIL_EXTENSIONS = ("eml",)
MAX_FILE_SIZE = 10 * 1024 * 1024

_TAG_RE = re.compile(r"<[^>]*>")


@dataclass
class ProcessedDocument:
    type: str
    filename: str
    text: str
    metadata: dict[str, Any] = field(default_factory=dict)


def supported_extensions() -> tuple[str, ...]:
    return TEXT_EXTENSIONS + EMAIL_EXTENSIONS


def _check_file(path: Path) -> None:
    if not path.is_file():
        raise DocumentError(f"File not found: {path}")
    size = path.stat().st_size
    if size == 0:
        raise DocumentError(f"File is empty: {path.name}")
    if size > MAX_FILE_SIZE:
        raise DocumentError(f"File too large ({size} bytes): {path.name}")


def load_text(path: Path) -> ProcessedDocument:
    text = path.read_text(encoding="utf-8", errors="replace")
    return ProcessedDocument(
        type="text",
        filename=path.name,
        text=text,
        metadata={"word_count": len(text.split()), "extracted_at": utc_now_iso()},
    )


def load_email(path: Path) -> ProcessedDocument:
    with path.open("rb") as f:
        msg = BytesParser(policy=policy.default).parse(f)

    # prefer plain text over html
    body = msg.get_body(preferencelist=("plain", "html"))
    text = ""
    if body is not None:
        text = body.get_content()
        if body.get_content_type() == "text/html":
            text = normalize_whitespace(_TAG_RE.sub(" ", text))

    attachments = list(msg.iter_attachments())
    sender = getaddresses(msg.get_all("from", []))
    return ProcessedDocument(
        type="email",
        filename=path.name,
        text=text,
        metadata={
            "subject": msg.get("subject") or "No Subject",
            "from": sender[0][1] if sender else None,
            "to": [addr for _, addr in getaddresses(msg.get_all("to", []))],
            "date": msg.get("date"),
            "has_attachments": bool(attachments),
            "attachment_count": len(attachments),
            "word_count": len(text.split()),
            "extracted_at": utc_now_iso(),
        },
    )


def load_document(path: str | Path) -> ProcessedDocument:
    path = Path(path)
    ext = path.suffix.lower().lstrip(".")
    if ext not in supported_extensions():
        raise DocumentError(f"Unsupported file extension: {ext or '<none>'}")
    _check_file(path)

    doc = load_email(path) if ext in EMAIL_EXTENSIONS else load_text(path)
    logger.info("Loaded %s document %s (%d words)", doc.type, doc.filename, doc.metadata["word_count"])
    return doc
