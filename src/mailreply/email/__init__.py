"""Mailbox access, MIME parsing, content normalization, and outbound mail."""

from mailreply.email.models import InboundMessage, OutboundEmail

__all__ = ["InboundMessage", "OutboundEmail"]
