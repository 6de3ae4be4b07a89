"""Extraction of routing directives from AI-generated reply text.

Two mutually exclusive modes:

- **Structured**: the first fenced block tagged ``json``.  When it parses to
  an object, the exact fenced text is removed from the display content,
  ``recipients`` / ``cc`` lists become the override lists, and every other
  key becomes a ``Directive``.
- **Natural language** (only without a valid structured block): the Turkish
  "reply only to X" and "also add X" instructions.
"""

from __future__ import annotations

import json
import re
from typing import Any

import structlog

from mailreply.domain.types import DirectiveKind
from mailreply.llm.models import AiReply, Directive

logger = structlog.get_logger()

JSON_BLOCK_PATTERN = re.compile(r"```json\s*(.*?)\s*```", re.S)

# "Cevabı sadece ali@example.com'a gönder"
SEND_TO_ONLY_PATTERN = re.compile(
    r"cevab[ıi]\s+sadece\s+([^\s,;]+@[^\s,;]+)['’][ae]\s+gönder", re.I
)
# "Şunu da ekle: veli@example.com"
ADD_RECIPIENT_PATTERN = re.compile(r"şunu\s+da\s+ekle:\s+([^\s,;]+@[^\s,;]+)", re.I)

_RESERVED_KEYS = frozenset({"recipients", "cc"})


def clean_address(candidate: str) -> str:
    """Trim whitespace and sentence punctuation picked up by a pattern."""
    return candidate.strip().rstrip(".!?)")


def _string_list(value: Any) -> tuple[str, ...]:
    if not isinstance(value, list):
        return ()
    return tuple(item.strip() for item in value if isinstance(item, str) and item.strip())


def _parse_structured(text: str) -> AiReply | None:
    match = JSON_BLOCK_PATTERN.search(text)
    if match is None:
        return None

    try:
        data = json.loads(match.group(1))
    except json.JSONDecodeError:
        logger.warning("ai_directive_block_invalid", block=match.group(1)[:200])
        return None
    if not isinstance(data, dict):
        logger.warning("ai_directive_block_not_object", type=type(data).__name__)
        return None

    directives = tuple(
        Directive.from_item(key, value)
        for key, value in data.items()
        if key not in _RESERVED_KEYS
    )
    unknown = [d.key for d in directives if d.kind is DirectiveKind.UNKNOWN]
    if unknown:
        logger.info("ai_directive_unknown_keys", keys=unknown)

    return AiReply(
        content=text.replace(match.group(0), "").strip(),
        recipients=_string_list(data.get("recipients")),
        cc=_string_list(data.get("cc")),
        directives=directives,
    )


def _parse_natural_language(text: str) -> AiReply:
    recipients: tuple[str, ...] = ()
    cc: list[str] = []
    directives: list[Directive] = []

    only_match = SEND_TO_ONLY_PATTERN.search(text)
    if only_match:
        recipients = (clean_address(only_match.group(1)),)
        directives.append(
            Directive(
                kind=DirectiveKind.OVERRIDE_RECIPIENTS,
                key=DirectiveKind.OVERRIDE_RECIPIENTS.value,
                value=True,
            )
        )

    add_match = ADD_RECIPIENT_PATTERN.search(text)
    if add_match:
        cc.append(clean_address(add_match.group(1)))

    return AiReply(
        content=text.strip(),
        recipients=recipients,
        cc=tuple(cc),
        directives=tuple(directives),
    )


def parse_ai_reply(text: str) -> AiReply:
    """Split raw AI reply text into display content and routing directives.

    Args:
        text: The reply exactly as returned by the AI provider.

    Returns:
        An ``AiReply``.  Without any directive the whole (trimmed) text is
        the content and the override lists are empty.
    """
    structured = _parse_structured(text)
    if structured is not None:
        return structured
    return _parse_natural_language(text)
