"""LLM integration: Anthropic client, prompt building, and reply directive parsing."""

from mailreply.llm.directives import parse_ai_reply
from mailreply.llm.models import AiReply, AiRequest, Directive, PromptSegment, SegmentRole

__all__ = [
    "AiReply",
    "AiRequest",
    "Directive",
    "PromptSegment",
    "SegmentRole",
    "parse_ai_reply",
]
