"""Raw RFC 822 parsing and sender-side directive extraction.

Provides helpers for:
- Decoding raw message bytes from the mailbox into an ``InboundMessage``
- Pulling the optional custom prompt and routing directives out of the
  sender's own text
"""

from __future__ import annotations

import re
from email import message_from_bytes
from email.errors import HeaderParseError
from email.header import decode_header, make_header
from email.message import Message
from email.utils import getaddresses

import structlog

from mailreply.domain.types import DirectiveKind
from mailreply.email.models import InboundMessage
from mailreply.email.normalizer import ContentNormalizer, decode_bytes
from mailreply.llm.directives import (
    ADD_RECIPIENT_PATTERN,
    SEND_TO_ONLY_PATTERN,
    clean_address,
)
from mailreply.llm.models import Directive

logger = structlog.get_logger()

CUSTOM_PROMPT_MAX_LENGTH = 200

_HEADER_END_RE = re.compile(rb"\r?\n\r?\n")
_FOLD_RE = re.compile(r"\r?\n[ \t]+")
_LINE_BREAK_RE = re.compile(r"[\r\n]+")


def unfold_header(value: str) -> str:
    """Join a folded header value onto one line."""
    return _LINE_BREAK_RE.sub(" ", _FOLD_RE.sub(" ", value))


def decode_header_value(value: object) -> str:
    """Decode an RFC 2047 header value to one line of text.

    Folding is undone first, and line breaks that only appear after decoding
    are flattened too, so the result is always safe to reuse as a header.
    Malformed input is returned unfolded but otherwise undecoded.
    """
    if value is None:
        return ""
    raw = unfold_header(str(value))
    try:
        decoded = str(make_header(decode_header(raw)))
    except (HeaderParseError, LookupError, UnicodeDecodeError):
        decoded = raw
    return unfold_header(decoded).strip()


def parse_addresses(msg: Message, header: str) -> tuple[str, ...]:
    """Return the bare addresses in every *header* occurrence, in order."""
    values = [str(v) for v in msg.get_all(header, [])]
    return tuple(addr.strip() for _, addr in getaddresses(values) if addr and addr.strip())


def _raw_body(raw: bytes) -> bytes:
    match = _HEADER_END_RE.search(raw)
    return raw[match.end():] if match else b""


def _first_part(msg: Message, content_type: str) -> str:
    for part in msg.walk():
        if part.get_content_type() != content_type or part.is_multipart():
            continue
        payload = part.get_payload(decode=True)
        if isinstance(payload, bytes) and payload:
            return decode_bytes(payload, part.get_content_charset())
    return ""


def parse_raw_message(raw: bytes) -> InboundMessage | None:
    """Parse raw message bytes into an ``InboundMessage``.

    For multipart messages ``body`` holds the undecoded MIME body so that the
    normalizer can pick the plain part and strip attachments.  Single-part
    messages get their transfer encoding decoded here.

    Args:
        raw: The full raw message as fetched from the mailbox.

    Returns:
        The parsed message, or ``None`` when it has no ``Message-ID`` (it
        could not be marked or deleted later).
    """
    msg: Message = message_from_bytes(raw)

    message_id = unfold_header(str(msg.get("Message-ID", ""))).strip()
    if not message_id:
        logger.warning("message_without_message_id", subject=decode_header_value(msg["Subject"]))
        return None

    from_pairs = getaddresses([str(v) for v in msg.get_all("From", [])])
    from_name, from_email = from_pairs[0] if from_pairs else ("", "")

    if msg.is_multipart():
        body = decode_bytes(_raw_body(raw))
    else:
        payload = msg.get_payload(decode=True)
        body = (
            decode_bytes(payload, msg.get_content_charset())
            if isinstance(payload, bytes)
            else str(msg.get_payload())
        )

    html_body = _first_part(msg, "text/html") if msg.is_multipart() else ""
    if not msg.is_multipart() and msg.get_content_type() == "text/html":
        html_body = body

    in_reply_to = unfold_header(str(msg.get("In-Reply-To", ""))).strip() or None
    references = " ".join(str(msg.get("References", "")).split()) or None

    return InboundMessage(
        message_id=message_id,
        subject=decode_header_value(msg["Subject"]),
        body=body,
        html_body=html_body,
        from_email=from_email.strip(),
        from_name=decode_header_value(from_name),
        to=parse_addresses(msg, "To"),
        cc=parse_addresses(msg, "Cc"),
        reply_to=parse_addresses(msg, "Reply-To"),
        in_reply_to=in_reply_to,
        references=references,
        date=str(msg.get("Date", "")).strip(),
    )


def extract_sender_directives(
    message: InboundMessage,
    normalizer: ContentNormalizer,
    honor_directives: bool = False,
    include_custom_prompt: bool = False,
) -> InboundMessage:
    """Attach the sender's custom prompt and routing directives.

    The custom prompt is the first non-empty line of the normalized body.
    Directives use the same Turkish phrasing the AI reply parser understands:
    "reply only to X" becomes ``send_to_only`` and "also add X" becomes
    ``add_recipient``.

    Args:
        message: The freshly parsed message.
        normalizer: The run's normalizer variant.
        honor_directives: Extract ``send_to_only`` / ``add_recipient``.
        include_custom_prompt: Extract the first-line custom prompt.

    Returns:
        A copy of *message* with ``custom_prompt`` and
        ``special_directives`` filled in.
    """
    if not honor_directives and not include_custom_prompt:
        return message

    clean = normalizer.normalize(message.body)

    custom_prompt: str | None = None
    if include_custom_prompt:
        first_line = next((line.strip() for line in clean.split("\n") if line.strip()), "")
        if first_line and len(first_line) <= CUSTOM_PROMPT_MAX_LENGTH:
            custom_prompt = first_line

    directives: list[Directive] = []
    if honor_directives:
        only_match = SEND_TO_ONLY_PATTERN.search(clean)
        if only_match:
            directives.append(
                Directive(
                    kind=DirectiveKind.SEND_TO_ONLY,
                    key=DirectiveKind.SEND_TO_ONLY.value,
                    value=clean_address(only_match.group(1)),
                )
            )
        add_match = ADD_RECIPIENT_PATTERN.search(clean)
        if add_match:
            directives.append(
                Directive(
                    kind=DirectiveKind.ADD_RECIPIENT,
                    key=DirectiveKind.ADD_RECIPIENT.value,
                    value=clean_address(add_match.group(1)),
                )
            )

    if directives:
        logger.info(
            "sender_directives_found",
            message_id=message.message_id,
            kinds=[d.kind.value for d in directives],
        )

    return message.model_copy(
        update={"custom_prompt": custom_prompt, "special_directives": tuple(directives)}
    )
