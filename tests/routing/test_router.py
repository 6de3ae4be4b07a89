"""Tests for recipient routing."""

from __future__ import annotations

import pytest
from pydantic import ValidationError

from mailreply.domain.types import DirectiveKind
from mailreply.email.models import InboundMessage
from mailreply.llm.models import AiReply, Directive
from mailreply.routing.models import RoutingDecision, RoutingPolicy
from mailreply.routing.router import finalize_recipients, route

SELF = "asistan@firma.com.tr"
ALLOW_AI = RoutingPolicy(allow_ai_recipients=True)
DENY_AI = RoutingPolicy()

OVERRIDE = Directive(kind=DirectiveKind.OVERRIDE_RECIPIENTS, key="override_recipients", value=True)


def _original(**overrides: object) -> InboundMessage:
    fields: dict[str, object] = {
        "message_id": "<m1@firma.com.tr>",
        "from_email": "ayse@firma.com.tr",
        "to": (SELF, "mehmet@firma.com.tr"),
        "cc": ("can@ortak.com",),
    }
    fields.update(overrides)
    return InboundMessage(**fields)  # type: ignore[arg-type]


# ---------------------------------------------------------------------------
# Default reply-all
# ---------------------------------------------------------------------------


class TestDefaultRouting:
    """Reply-all minus our own mailbox."""

    def test_reply_all_without_self(self) -> None:
        decision = route(_original(), AiReply(content="x"), SELF, DENY_AI)

        assert decision.to == ("ayse@firma.com.tr", "mehmet@firma.com.tr")
        assert decision.cc == ("can@ortak.com",)

    def test_self_removed_case_insensitively(self) -> None:
        original = _original(to=("Asistan@Firma.com.tr",), cc=(" ASISTAN@firma.com.tr ",))

        decision = route(original, AiReply(content="x"), SELF, DENY_AI)

        assert decision.to == ("ayse@firma.com.tr",)
        assert decision.cc == ()

    def test_duplicates_removed_and_to_wins_over_cc(self) -> None:
        original = _original(
            to=(SELF, "Ayse@firma.com.tr", "mehmet@firma.com.tr"),
            cc=("mehmet@FIRMA.com.tr", "can@ortak.com", "can@ortak.com"),
        )

        decision = route(original, AiReply(content="x"), SELF, DENY_AI)

        assert decision.to == ("ayse@firma.com.tr", "mehmet@firma.com.tr")
        assert decision.cc == ("can@ortak.com",)

    def test_invalid_addresses_dropped(self) -> None:
        original = _original(to=(SELF, "not-an-address", "x@nodot"), cc=("@ortak.com",))

        decision = route(original, AiReply(content="x"), SELF, DENY_AI)

        assert decision.to == ("ayse@firma.com.tr",)
        assert decision.cc == ()

    def test_ai_suggestions_ignored_when_not_allowed(self) -> None:
        reply = AiReply(content="x", recipients=("ali@baska.com",), directives=(OVERRIDE,))

        decision = route(_original(), reply, SELF, DENY_AI)

        assert "ali@baska.com" not in decision.to


# ---------------------------------------------------------------------------
# AI recipients
# ---------------------------------------------------------------------------


class TestAiRecipients:
    """AI-chosen recipients under policy."""

    def test_override_replaces_recipients(self) -> None:
        reply = AiReply(
            content="x",
            recipients=("ali@baska.com",),
            cc=("veli@ortak.com",),
            directives=(OVERRIDE,),
        )

        decision = route(_original(), reply, SELF, ALLOW_AI)

        assert decision.to == ("ali@baska.com",)
        assert decision.cc == ("veli@ortak.com",)

    def test_override_with_only_invalid_addresses_falls_back(self) -> None:
        reply = AiReply(content="x", recipients=("geçersiz",), directives=(OVERRIDE,))

        decision = route(_original(), reply, SELF, ALLOW_AI)

        assert decision.to == ("ayse@firma.com.tr", "mehmet@firma.com.tr")

    def test_suggestions_appended_without_override(self) -> None:
        reply = AiReply(content="x", recipients=("ali@baska.com",), cc=("veli@ortak.com",))

        decision = route(_original(), reply, SELF, ALLOW_AI)

        assert decision.to == ("ayse@firma.com.tr", "mehmet@firma.com.tr", "ali@baska.com")
        assert decision.cc == ("can@ortak.com", "veli@ortak.com")


# ---------------------------------------------------------------------------
# Sender directives
# ---------------------------------------------------------------------------


class TestSenderDirectives:
    """Routing requests made by the original sender."""

    def test_send_to_only(self) -> None:
        original = _original(
            special_directives=(
                Directive(kind=DirectiveKind.SEND_TO_ONLY, key="send_to_only", value="ali@firma.com.tr"),
            )
        )

        decision = route(original, AiReply(content="x"), SELF, DENY_AI)

        assert decision.to == ("ali@firma.com.tr",)
        assert decision.cc == ()

    def test_add_recipient(self) -> None:
        original = _original(
            special_directives=(
                Directive(kind=DirectiveKind.ADD_RECIPIENT, key="add_recipient", value="veli@ortak.com"),
            )
        )

        decision = route(original, AiReply(content="x"), SELF, DENY_AI)

        assert decision.cc == ("can@ortak.com", "veli@ortak.com")

    def test_invalid_directive_address_ignored(self) -> None:
        original = _original(
            special_directives=(
                Directive(kind=DirectiveKind.SEND_TO_ONLY, key="send_to_only", value="kimse"),
            )
        )

        decision = route(original, AiReply(content="x"), SELF, DENY_AI)

        assert decision.to == ("ayse@firma.com.tr", "mehmet@firma.com.tr")


# ---------------------------------------------------------------------------
# Steps and decision model
# ---------------------------------------------------------------------------


class TestRoutingSteps:
    """Custom step tuples and RoutingDecision invariants."""

    def test_custom_steps(self) -> None:
        decision = route(_original(), AiReply(content="x"), SELF, DENY_AI, steps=(finalize_recipients,))

        assert decision.is_empty

    def test_decision_rejects_overlap(self) -> None:
        with pytest.raises(ValidationError):
            RoutingDecision(to=("ali@firma.com.tr",), cc=("ALI@firma.com.tr",))

    def test_decision_rejects_duplicates(self) -> None:
        with pytest.raises(ValidationError):
            RoutingDecision(to=("ali@firma.com.tr", "Ali@firma.com.tr"))
