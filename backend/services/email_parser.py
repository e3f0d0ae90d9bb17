"""
E-mail container parsing for family expansion.

EML (MIME) is read with the standard library parser; Outlook MSG with
extract-msg. Each attachment later becomes a child document sharing the
parent's family_id. Parse failures never raise: they come back as
ParsedEmail.parse_error so ingestion can annotate the parent and carry on.
"""
import logging
import re
from dataclasses import dataclass, field
from datetime import datetime
from email import policy
from email.parser import BytesParser
from email.utils import parsedate_to_datetime
from pathlib import Path
from typing import List, Optional

import extract_msg
from bs4 import BeautifulSoup

from constants import EMAIL_EXTENSIONS, EMAIL_MIME_TYPES

logger = logging.getLogger(__name__)


@dataclass
class EmailAttachment:
    filename: str
    content: bytes
    content_type: Optional[str] = None


@dataclass
class ParsedEmail:
    subject: Optional[str] = None
    sender: Optional[str] = None
    to: Optional[str] = None
    date: Optional[datetime] = None
    text: Optional[str] = None
    html: Optional[str] = None
    attachments: List[EmailAttachment] = field(default_factory=list)
    parse_error: Optional[str] = None


def is_email_file(mime_type: Optional[str], filename: str) -> bool:
    """Detect an e-mail container by declared MIME type or filename suffix."""
    if (filename or "").lower().endswith(EMAIL_EXTENSIONS):
        return True
    return mime_type in EMAIL_MIME_TYPES


def strip_html_to_text(html: str) -> str:
    """Reduce an HTML body to whitespace-normalised plain text."""
    soup = BeautifulSoup(html, "html.parser")
    for tag in soup(["style", "script"]):
        tag.decompose()
    return re.sub(r"\s+", " ", soup.get_text(" ")).strip()


def _decode_html_bytes(raw: bytes) -> Optional[str]:
    """Outlook often stores the HTML body as UTF-16LE."""
    if not raw:
        return None
    if len(raw) >= 2 and raw[1] == 0x00 and raw[0] in (0x3C, 0xFF):
        return raw.decode("utf-16-le", errors="replace")
    return raw.decode("utf-8", errors="replace")


def _parse_eml(buffer: bytes) -> ParsedEmail:
    msg = BytesParser(policy=policy.default).parsebytes(buffer)

    attachments: List[EmailAttachment] = []
    for index, part in enumerate(msg.iter_attachments(), start=1):
        content_type = part.get_content_type()
        if content_type == "message/rfc822":
            inner = part.get_payload()
            content = inner[0].as_bytes() if isinstance(inner, list) and inner else b""
        else:
            content = part.get_payload(decode=True) or b""
        if not content:
            continue
        filename = part.get_filename()
        if not filename:
            filename = "attachment.eml" if content_type == "message/rfc822" else f"attachment_{index}"
        attachments.append(EmailAttachment(filename=filename, content=content, content_type=content_type))

    text = None
    html = None
    plain_part = msg.get_body(preferencelist=("plain",))
    if plain_part is not None:
        text = (plain_part.get_content() or "").strip() or None
    html_part = msg.get_body(preferencelist=("html",))
    if html_part is not None:
        html = html_part.get_content()
        if not text:
            text = strip_html_to_text(html) or None

    date = None
    if msg["date"]:
        try:
            date = parsedate_to_datetime(str(msg["date"]))
        except (TypeError, ValueError):
            logger.warning(f"Unparseable e-mail date header: {msg['date']!r}")

    return ParsedEmail(
        subject=str(msg["subject"]) if msg["subject"] is not None else None,
        sender=str(msg["from"]) if msg["from"] is not None else None,
        to=str(msg["to"]) if msg["to"] is not None else None,
        date=date,
        text=text,
        html=html,
        attachments=attachments,
    )


def _parse_msg(buffer: bytes) -> ParsedEmail:
    msg = extract_msg.openMsg(buffer)
    try:
        attachments: List[EmailAttachment] = []
        for index, att in enumerate(msg.attachments, start=1):
            data = att.data
            if not isinstance(data, (bytes, bytearray)) or not data:
                continue
            filename = att.longFilename or att.shortFilename or f"attachment_{index}"
            attachments.append(
                EmailAttachment(
                    filename=filename,
                    content=bytes(data),
                    content_type=getattr(att, "mimetype", None),
                )
            )

        text = (msg.body or "").strip() or None
        html = None
        if msg.htmlBody:
            html = _decode_html_bytes(msg.htmlBody)
            if not text and html:
                text = strip_html_to_text(html) or None

        date = msg.date
        if isinstance(date, str):
            try:
                date = parsedate_to_datetime(date)
            except (TypeError, ValueError):
                date = None

        return ParsedEmail(
            subject=msg.subject,
            sender=msg.sender,
            to=msg.to,
            date=date,
            text=text,
            html=html,
            attachments=attachments,
        )
    finally:
        msg.close()


def parse_email(buffer: bytes, filename: str = "") -> ParsedEmail:
    """
    Parse an EML or MSG buffer.

    Returns:
        ParsedEmail; on failure only parse_error is populated.
    """
    parser = _parse_msg if Path(filename or "").suffix.lower() == ".msg" else _parse_eml
    try:
        return parser(buffer)
    except Exception as e:
        logger.warning(f"E-mail parse error for '{filename}': {e}")
        return ParsedEmail(parse_error=f"Email parsing failed: {e}")
