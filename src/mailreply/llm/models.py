"""Pydantic models for AI provider I/O and routing directives."""

from __future__ import annotations

from enum import StrEnum
from typing import Any

from pydantic import BaseModel, ConfigDict, Field

from mailreply.domain.types import OVERRIDE_KINDS, DirectiveKind


class Directive(BaseModel):
    """A single routing directive, tagged by kind.

    ``key`` keeps the spelling it arrived with so unknown directives can be
    logged and passed on verbatim.
    """

    model_config = ConfigDict(frozen=True)

    kind: DirectiveKind
    key: str
    value: Any = None

    @classmethod
    def from_item(cls, key: str, value: Any) -> Directive:
        """Build a directive from a raw key/value pair, mapping known keys."""
        normalized = key.strip().lower()
        try:
            kind = DirectiveKind(normalized)
        except ValueError:
            kind = DirectiveKind.UNKNOWN
        return cls(kind=kind, key=key, value=value)

    @property
    def address(self) -> str | None:
        """The directive value as a trimmed address string, if it is one."""
        if isinstance(self.value, str) and self.value.strip():
            return self.value.strip()
        return None


class AiReply(BaseModel):
    """An AI reply split into display content and routing instructions."""

    model_config = ConfigDict(frozen=True)

    content: str
    recipients: tuple[str, ...] = ()
    cc: tuple[str, ...] = ()
    directives: tuple[Directive, ...] = ()

    @property
    def overrides_recipients(self) -> bool:
        """True when a directive marks the recipient list as authoritative."""
        return any(
            directive.kind in OVERRIDE_KINDS and bool(directive.value)
            for directive in self.directives
        )

    @property
    def extra_instructions(self) -> dict[str, Any]:
        """All directives as an original-key to value map."""
        return {directive.key: directive.value for directive in self.directives}


class SegmentRole(StrEnum):
    """Role of a prompt segment sent to the AI provider."""

    SYSTEM = "system"
    USER = "user"


class PromptSegment(BaseModel):
    """One role-tagged piece of text in an AI request."""

    model_config = ConfigDict(frozen=True)

    role: SegmentRole
    text: str


class AiRequest(BaseModel):
    """Ordered prompt segments plus generation parameters."""

    model_config = ConfigDict(frozen=True)

    segments: tuple[PromptSegment, ...]
    model: str
    max_tokens: int = Field(default=7000, gt=0)
    temperature: float = Field(default=0.7, ge=0.0, le=1.0)
