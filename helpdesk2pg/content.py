"""
Attachment content normalization: decide whether a payload can travel as
UTF-8 text or has to be base64-encoded for the destination.
"""

import re
import base64

import puremagic

from helpdesk2pg.charset import repair_charset
from helpdesk2pg.config import MigrationSettings
from helpdesk2pg.errors import EncodingUnrecoverable
from helpdesk2pg.models import Row


MIME_PATTERN = re.compile(r"^[\w.+-]+/[\w.+-]+$")

BINARY_EXTENSIONS = {
    # documents
    "pdf", "doc", "docx", "dot", "xls", "xlsx", "ppt", "pptx", "pps",
    "odt", "ods", "odp", "odg", "vsd", "msg",
    # archives
    "zip", "gz", "tgz", "bz2", "xz", "rar", "7z", "tar", "jar", "cab",
    # images
    "jpg", "jpeg", "png", "gif", "bmp", "tif", "tiff", "ico", "psd",
    # executables
    "exe", "dll", "msi", "bin", "com", "so",
    # media
    "mp3", "mp4", "wav", "wma", "avi", "mov", "mpg", "mpeg", "wmv", "ogg", "flv",
}

BINARY_TYPE_PREFIXES = ("application", "image")

UNENCODED_MARKERS = (None, "", "none")

# everything below 0x20 except \t \n \f \r, plus DEL
CONTROL_BYTES = bytes(b for b in range(0x20) if b not in (0x09, 0x0a, 0x0c, 0x0d)) + b"\x7f"

PASSTHROUGH = "passthrough"
TEXT = "text"
BASE64 = "base64"


def clean_content_type(value) -> str:
    """Drop parameters (``; charset=…``) and reject anything but ``type/subtype``."""
    if not value:
        return None
    mime = str(value).split(";", 1)[0].strip().lower()
    return mime if MIME_PATTERN.match(mime) else None


def looks_like_text(data: bytes) -> bool:
    """True when ``data``, minus trailing NUL padding, has no control bytes but tab and line breaks."""
    stripped = bytes(data).rstrip(b"\x00")
    return bool(stripped) and len(stripped.translate(None, CONTROL_BYTES)) == len(stripped)


def sniff_content_type(data: bytes) -> str:
    """Best-guess MIME type from file signatures, or None when unknown.

    Payloads without a known signature count as ``text/plain`` when they
    contain no control bytes.
    """
    if not data:
        return None
    try:
        mime = clean_content_type(puremagic.from_string(bytes(data), mime=True))
    except (puremagic.PureError, ValueError):
        mime = None
    if mime is None and looks_like_text(data):
        return "text/plain"
    return mime


def has_binary_extension(filename) -> bool:
    if not filename:
        return False
    if isinstance(filename, (bytes, bytearray)):
        filename = bytes(filename).decode("utf-8", errors="replace")
    _, dot, ext = filename.rpartition(".")
    return bool(dot) and ext.lower() in BINARY_EXTENSIONS


def _as_bytes(value) -> bytes:
    if isinstance(value, str):
        return value.encode("utf-8")
    return bytes(value)


def _strict_utf8(data: bytes) -> str:
    """Decoded text, or None if ``data`` is not NUL-free UTF-8."""
    try:
        text = data.decode("utf-8")
    except UnicodeDecodeError:
        return None
    # PostgreSQL text values cannot hold NUL characters
    if "\x00" in text:
        return None
    return text


class ContentNormalizer:
    """Rewrites attachment rows in place; see ``normalize``."""

    def __init__(self, settings: MigrationSettings):
        self.settings = settings
        self.console = settings.console

    def normalize(self, row: Row, table: str = None) -> str:
        """Normalize one attachment row and return what was done.

        Rows already carrying a content-encoding marker are left untouched.
        Otherwise the payload is either stored back as text or replaced by
        its base64 encoding with the marker set to ``base64``.
        """
        if row.content_encoding not in UNENCODED_MARKERS or row.content is None:
            return PASSTHROUGH
        if isinstance(row.content, str):
            # text columns on the source already hold decoded strings
            return PASSTHROUGH

        payload = _as_bytes(row.content)
        # parameters such as "; charset=utf-8" are kept in the column
        content_type = clean_content_type(row.content_type)
        if content_type is None:
            sniffed = sniff_content_type(payload)
            if sniffed:
                row.content_type = sniffed
            content_type = sniffed or ""

        if content_type.lower().startswith(BINARY_TYPE_PREFIXES) or has_binary_extension(row.filename):
            return self._encode(row, payload)

        text = _strict_utf8(payload)
        if text is not None:
            row.content = text
            return TEXT

        sniffed = sniff_content_type(payload)
        if content_type.lower().startswith("text/") and sniffed and sniffed.startswith("text/"):
            try:
                outcome = repair_charset(payload)
            except EncodingUnrecoverable as e:
                if self.settings.strict_encoding:
                    raise EncodingUnrecoverable(f"{row.filename}: {e.reason}", table=table) from e
                self.console.print(
                    f"  [yellow]⚠ {row.filename}: {e.reason}; storing as base64[/yellow]"
                )
                return self._encode(row, payload)
            if outcome.valid:
                repaired = _strict_utf8(outcome.data)
                if repaired is not None:
                    row.content = repaired
                    return TEXT

        return self._encode(row, payload)

    def _encode(self, row: Row, payload: bytes) -> str:
        row.content_encoding = BASE64
        row.content = base64.b64encode(payload).decode("ascii")
        if self.settings.verbose:
            self.console.print(f"    [dim]{row.filename}: stored as base64 ({len(payload):,} bytes)[/dim]")
        return BASE64
