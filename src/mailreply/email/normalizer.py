"""Staged normalization of raw mail bodies into plain readable text.

Each stage is a pure ``str -> str`` function that is a no-op when its trigger
pattern is absent.  ``ContentNormalizer`` composes them in the fixed order of
``NORMALIZATION_STEPS`` and re-runs the chain until the text stops changing,
so ``normalize(normalize(x)) == normalize(x)``.

Stage order:

1. ``ensure_text`` -- canonical UTF-8 text with ``\\n`` line endings
2. ``extract_plain_part`` -- prefer the ``text/plain`` MIME part
3. ``strip_binary_parts`` -- base64 images / attachments become placeholders
4. ``strip_mime_structure`` -- boundary lines and structural header tokens
5. ``strip_html``
6. ``decode_quoted_printable``
7. ``decode_encoded_words`` -- RFC 2047 ``=?charset?B|Q?...?=``
8. ``decode_hex_escapes`` -- leftover ``=XX`` octet runs
9. ``collapse_repeated_signature``
10. ``decode_html_entities``
11. ``normalize_whitespace``
12. trim, with a minimally stripped fallback for near-empty results
"""

from __future__ import annotations

import base64
import binascii
import codecs
import html
import re
from collections.abc import Callable

import structlog

logger = structlog.get_logger()

ATTACHMENT_PLACEHOLDER = "[EK KALDIRILDI]"
INLINE_IMAGE_PLACEHOLDER = "[GÖRSEL KALDIRILDI]"

MIN_CONTENT_LENGTH = 10
SIGNATURE_WINDOW = 8

# Turkish code pages come before Latin-1 so that ğ/ş/ı survive.
FALLBACK_ENCODINGS = ("utf-8", "cp1254", "iso-8859-9", "latin-1")

_MAX_PASSES = 4

Step = Callable[[str], str]

# RFC 2046 boundary characters.
_BOUNDARY = r"--(?=[-=_.]*[0-9A-Za-z])[0-9A-Za-z'()+_,./:=?-]+"

_MIME_PART_RE = re.compile(
    rf"^{_BOUNDARY}[ \t]*\n"
    r"(?P<headers>(?:[^\n]+\n)*?)\n"
    rf"(?P<body>.*?)(?=\n{_BOUNDARY}[ \t]*(?:\n|\Z)|\Z)",
    re.M | re.S,
)
_LEADING_PART_RE = re.compile(
    r"\A(?P<headers>(?:[A-Za-z][\w-]*:[^\n]*\n(?:[ \t][^\n]*\n)*)+)\n"
    rf"(?P<body>.*?)(?=\n{_BOUNDARY}[ \t]*(?:\n|\Z)|\Z)",
    re.S,
)
_TEXT_PLAIN_RE = re.compile(r"content-type:\s*text/plain\b", re.I)
_BASE64_CTE_RE = re.compile(r"content-transfer-encoding:\s*base64\b", re.I)
_INLINE_HEADER_RE = re.compile(r"^(?:content-id|x-attachment-id)\s*:", re.I | re.M)
_BINARY_TYPE_RE = re.compile(r"content-type:\s*(?:image|application)/", re.I)
_CHARSET_RE = re.compile(r"charset\s*=\s*\"?([A-Za-z0-9_.:-]+)", re.I)

_BOUNDARY_LINE_RE = re.compile(rf"^{_BOUNDARY}[ \t]*(?:\n|\Z)", re.M)
_STRUCTURAL_TOKEN_RE = re.compile(
    r"(?:content-id|x-attachment-id|content-disposition|content-transfer-encoding"
    r"|content-type|mime-version)\s*:[^\n]*(?:\n|\Z)"
    r"|(?:boundary|charset)\s*=[^\n]*(?:\n|\Z)"
    r"|^[ \t]+(?:file)?name\*?=[^\n]*(?:\n|\Z)",
    re.I | re.M,
)

_HIDDEN_BLOCK_RE = re.compile(r"<(style|script|head)\b[^>]*>.*?</\1\s*>", re.I | re.S)
_COMMENT_RE = re.compile(r"<!--.*?-->|<!DOCTYPE[^>]*>", re.I | re.S)
_LINE_BREAK_TAG_RE = re.compile(
    r"<br\s*/?>|</(?:p|div|tr|li|h[1-6]|blockquote|table)\s*>", re.I
)
_TAG_RE = re.compile(r"</?[A-Za-z][^<>]*>")
_BRACKETED_ADDRESS_RE = re.compile(r"<[^\s<>@]+@[^\s<>@]+>")

_SOFT_BREAK_RE = re.compile(r"=[ \t]*\n")
_QP_RUN_RE = re.compile(r"(?:=[0-9A-F]{2})+")
_HEX_RUN_RE = re.compile(r"(?:=[0-9A-Fa-f]{2})+")

_ENCODED_WORD_RE = re.compile(
    r"=\?([A-Za-z0-9_.:-]+)(?:\*[A-Za-z-]+)?\?([BbQq])\?([^?\s]*)\?="
)
_ENCODED_WORD_GAP_RE = re.compile(r"(?<=\?=)[ \t\n]+(?==\?[A-Za-z0-9_.:-]+\?[BbQq]\?)")

_REPEATED_SIGNATURE_RE = re.compile(r"(\n--[ \t]?\n.*?)\1+", re.S)

_HORIZONTAL_SPACE_RE = re.compile(r"[^\S\n]+")
_TRAILING_SPACE_RE = re.compile(r" +(?=\n|\Z)")
_EXCESS_NEWLINES_RE = re.compile(r"\n{3,}")

_SIGNATURE_START_RE = re.compile(
    r"^(?:--\s*|_{2,}\s*"
    r"|sent from my .*|iphone'umdan gönderildi|android'imden gönderildi"
    r"|saygılarımla,?|saygılarımızla,?|iyi çalışmalar,?"
    r"|best regards,?|kind regards,?|regards,?)$",
    re.I,
)


# ---------------------------------------------------------------------------
# Charset helpers
# ---------------------------------------------------------------------------


def decode_bytes(data: bytes, charset: str | None = None) -> str:
    """Decode *data* with *charset*, falling back through ``FALLBACK_ENCODINGS``.

    Args:
        data: Raw octets.
        charset: Declared charset, if any.  Unknown names are ignored.

    Returns:
        The decoded text.  Latin-1 accepts every byte, so this never raises.
    """
    candidates: list[str] = []
    if charset:
        try:
            candidates.append(codecs.lookup(charset).name)
        except LookupError:
            logger.debug("unknown_charset", charset=charset)
    candidates.extend(FALLBACK_ENCODINGS)

    for encoding in candidates:
        try:
            return data.decode(encoding)
        except UnicodeDecodeError:
            continue
    return data.decode("latin-1")


def _decode_hex_run(run: str, charset: str | None = None) -> str:
    """Decode a run of ``=XX`` escapes, or return it unchanged if it is not text."""
    data = bytes.fromhex(run.replace("=", ""))
    candidates = [charset] if charset else []
    for encoding in (*candidates, "utf-8", "cp1254"):
        try:
            decoded = data.decode(encoding)
        except (UnicodeDecodeError, LookupError):
            continue
        if all(ch.isprintable() or ch in "\t\r\n" for ch in decoded):
            return decoded
        return run
    return run


def _decode_part_body(headers: str, body: str) -> str:
    """Decode a base64 MIME part body; other transfer encodings pass through."""
    if not _BASE64_CTE_RE.search(headers):
        return body
    charset_match = _CHARSET_RE.search(headers)
    try:
        data = base64.b64decode("".join(body.split()), validate=False)
    except (binascii.Error, ValueError):
        return body
    return decode_bytes(data, charset_match.group(1) if charset_match else None)


# ---------------------------------------------------------------------------
# Stages
# ---------------------------------------------------------------------------


def ensure_text(raw: str | bytes) -> str:
    """Return *raw* as canonical text with ``\\n`` line endings.

    Bytes are decoded by trying UTF-8, then the Turkish code pages, then
    Latin-1.  Text carrying surrogate escapes (undecodable bytes smuggled
    through ``surrogateescape``) is re-decoded the same way.
    """
    if isinstance(raw, bytes):
        text = decode_bytes(raw)
    else:
        try:
            raw.encode("utf-8")
            text = raw
        except UnicodeEncodeError:
            text = decode_bytes(raw.encode("utf-8", errors="surrogateescape"))
    return text.replace("\r\n", "\n").replace("\r", "\n")


def extract_plain_part(text: str) -> str:
    """Isolate the ``text/plain`` part of a MIME multipart body.

    A plain part of five characters or fewer is ignored.  When no plain part
    exists the text is returned unchanged and HTML is stripped later.
    """
    for pattern in (_LEADING_PART_RE, _MIME_PART_RE):
        for match in pattern.finditer(text):
            headers = match.group("headers")
            if not _TEXT_PLAIN_RE.search(headers):
                continue
            body = _decode_part_body(headers, match.group("body"))
            if len(body.strip()) > 5:
                return body
    return text


def _replace_binary_part(match: re.Match[str]) -> str:
    headers = match.group("headers")
    if not _BASE64_CTE_RE.search(headers):
        return match.group(0)
    if _INLINE_HEADER_RE.search(headers):
        return INLINE_IMAGE_PLACEHOLDER
    if _BINARY_TYPE_RE.search(headers):
        return ATTACHMENT_PLACEHOLDER
    return match.group(0)


def strip_binary_parts(text: str) -> str:
    """Replace base64 inline images and attachments with placeholder tokens."""
    text = _LEADING_PART_RE.sub(_replace_binary_part, text)
    return _MIME_PART_RE.sub(_replace_binary_part, text)


def strip_mime_structure(text: str) -> str:
    """Remove boundary delimiter lines and residual structural header tokens.

    Each token is removed through the end of its line.  Removal can join two
    lines into a new token, so the pass repeats until nothing changes.
    """
    text = _BOUNDARY_LINE_RE.sub("", text)
    while True:
        stripped = _STRUCTURAL_TOKEN_RE.sub("", text)
        if stripped == text:
            return stripped
        text = stripped


def _drop_tag(match: re.Match[str]) -> str:
    if _BRACKETED_ADDRESS_RE.fullmatch(match.group(0)):
        return match.group(0)
    return ""


def strip_html(text: str) -> str:
    """Strip HTML markup, keeping line structure and ``<user@host>`` addresses."""
    text = _HIDDEN_BLOCK_RE.sub("", text)
    text = _COMMENT_RE.sub("", text)
    text = _LINE_BREAK_TAG_RE.sub("\n", text)
    return _TAG_RE.sub(_drop_tag, text)


def decode_quoted_printable(text: str) -> str:
    """Remove soft line breaks and decode uppercase ``=XX`` runs."""
    text = _SOFT_BREAK_RE.sub("", text)
    return _QP_RUN_RE.sub(lambda m: _decode_hex_run(m.group(0)), text)


def _decode_encoded_word(match: re.Match[str]) -> str:
    charset, encoding, payload = match.group(1), match.group(2).upper(), match.group(3)
    if encoding == "B":
        try:
            data = base64.b64decode(payload + "=" * (-len(payload) % 4))
        except (binascii.Error, ValueError):
            return match.group(0)
        return decode_bytes(data, charset)
    payload = payload.replace("_", " ")
    return _HEX_RUN_RE.sub(lambda m: _decode_hex_run(m.group(0), charset), payload)


def decode_encoded_words(text: str) -> str:
    """Decode RFC 2047 encoded words, converting foreign charsets to UTF-8.

    Whitespace between two adjacent encoded words is dropped, as RFC 2047
    requires.
    """
    if "=?" not in text:
        return text
    text = _ENCODED_WORD_GAP_RE.sub("", text)
    return _ENCODED_WORD_RE.sub(_decode_encoded_word, text)


def decode_hex_escapes(text: str) -> str:
    """Decode leftover ``=XX`` octet runs (either case) to characters."""
    return _HEX_RUN_RE.sub(lambda m: _decode_hex_run(m.group(0)), text)


def collapse_repeated_signature(text: str) -> str:
    """Collapse an immediately repeated ``-- `` signature block to one copy."""
    return _REPEATED_SIGNATURE_RE.sub(r"\1", text)


def decode_html_entities(text: str) -> str:
    return html.unescape(text)


def normalize_whitespace(text: str) -> str:
    """Canonical line endings, single spaces, at most one blank line in a row."""
    text = text.replace("\r\n", "\n").replace("\r", "\n")
    text = _HORIZONTAL_SPACE_RE.sub(" ", text)
    text = _TRAILING_SPACE_RE.sub("", text)
    return _EXCESS_NEWLINES_RE.sub("\n\n", text)


def truncate_signature(text: str, window: int = SIGNATURE_WINDOW) -> str:
    """Drop everything from the last signature-start line in the final *window* lines.

    The first line is never treated as a signature, so a message is never
    truncated to nothing.
    """
    lines = text.split("\n")
    first_candidate = max(1, len(lines) - window)
    for index in range(len(lines) - 1, first_candidate - 1, -1):
        if _SIGNATURE_START_RE.match(lines[index].strip()):
            return "\n".join(lines[:index]).rstrip()
    return text


NORMALIZATION_STEPS: tuple[Step, ...] = (
    extract_plain_part,
    strip_binary_parts,
    strip_mime_structure,
    strip_html,
    decode_quoted_printable,
    decode_encoded_words,
    decode_hex_escapes,
    collapse_repeated_signature,
    decode_html_entities,
    normalize_whitespace,
)


def minimal_strip(text: str) -> str:
    """Best-effort cleanup used when full normalization yields too little."""
    text = text.replace("\r\n", "\n").replace("\r", "\n")
    text = _TAG_RE.sub(_drop_tag, text)
    return _EXCESS_NEWLINES_RE.sub("\n\n", text).strip()


class ContentNormalizer:
    """Turn an arbitrarily encoded raw mail body into clean plain text.

    One instance (and therefore one variant) should be used for every message
    and thread body in a run.

    Args:
        truncate_signatures: Also drop trailing signature blocks (the
            stricter variant).
        signature_window: How many trailing lines are searched for a
            signature start.
    """

    def __init__(
        self,
        truncate_signatures: bool = False,
        signature_window: int = SIGNATURE_WINDOW,
    ) -> None:
        self._truncate_signatures = truncate_signatures
        self._signature_window = signature_window

    @property
    def steps(self) -> tuple[Step, ...]:
        if not self._truncate_signatures:
            return NORMALIZATION_STEPS
        window = self._signature_window
        return (*NORMALIZATION_STEPS, lambda text: truncate_signature(text, window))

    def _run_steps(self, text: str) -> str:
        for step in self.steps:
            text = step(text)
        return text.strip()

    def _normalize_pass(self, text: str) -> str:
        cleaned = text
        for _ in range(_MAX_PASSES):
            stepped = self._run_steps(cleaned)
            if stepped == cleaned:
                break
            cleaned = stepped

        if len(cleaned) < MIN_CONTENT_LENGTH:
            return minimal_strip(text)
        return cleaned

    def normalize(self, raw_body: str | bytes) -> str:
        """Normalize *raw_body*.  Never raises.

        The minimal-strip fallback is itself fed back through the pipeline
        until the output stops changing, so normalized text normalizes to
        itself.

        Args:
            raw_body: The raw body as fetched, text or bytes.

        Returns:
            Clean text, or a minimally stripped copy of the input when the
            cleaned result is shorter than ``MIN_CONTENT_LENGTH``.
        """
        original = ""
        try:
            original = ensure_text(raw_body)
            text = original
            for _ in range(_MAX_PASSES):
                result = self._normalize_pass(text)
                if result == text:
                    break
                text = result
            return text
        except Exception:
            logger.warning("normalization_failed", exc_info=True)
            if not original:
                if isinstance(raw_body, bytes):
                    original = raw_body.decode("utf-8", errors="replace")
                else:
                    original = raw_body
            return minimal_strip(original)


def normalize(raw_body: str | bytes) -> str:
    """Normalize with the default (non-truncating) variant."""
    return ContentNormalizer().normalize(raw_body)
