"""Reply composition via the Anthropic Messages API.

The request is an ordered list of role-tagged segments: the operator's
system prompt, the constructed prompt, the formatting instruction and,
when AI-chosen recipients are enabled, the recipient-directive instruction.
System segments are sent as system text blocks in their original order and
user segments as user messages.
"""

from __future__ import annotations

import anthropic
import structlog
from anthropic import Anthropic

from mailreply.domain.errors import AiProviderError
from mailreply.email.models import InboundMessage
from mailreply.llm.client import DEFAULT_MAX_TOKENS, DEFAULT_MODEL, DEFAULT_TEMPERATURE
from mailreply.llm.models import AiRequest, PromptSegment, SegmentRole
from mailreply.llm.prompts import (
    CUSTOM_PROMPT_TEMPLATE,
    DEFAULT_SYSTEM_PROMPT,
    FORMATTING_INSTRUCTION,
    LATEST_EMAIL_TEMPLATE,
    RECIPIENT_INSTRUCTION,
    THREAD_HEADER,
    THREAD_ITEM_TEMPLATE,
)

logger = structlog.get_logger()


def build_prompt(message: InboundMessage, clean_body: str) -> str:
    """Build the user prompt for *message*.

    Thread bodies are stored oldest first and presented newest first,
    numbered from 1.

    Args:
        message: The inbound message, with thread bodies and custom prompt
            already attached.
        clean_body: The normalized body of *message*.

    Returns:
        The prompt text.
    """
    prompt = ""
    if message.custom_prompt:
        prompt += CUSTOM_PROMPT_TEMPLATE.format(custom_prompt=message.custom_prompt)

    prompt += LATEST_EMAIL_TEMPLATE.format(
        from_name=message.from_name,
        from_email=message.from_email,
        subject=message.subject,
        body=clean_body,
    )

    if message.thread_bodies:
        prompt += THREAD_HEADER
        for index, body in enumerate(reversed(message.thread_bodies), start=1):
            prompt += THREAD_ITEM_TEMPLATE.format(index=index, body=body)

    return prompt


def build_request(
    message: InboundMessage,
    clean_body: str,
    system_prompt: str = "",
    include_recipient_instruction: bool = False,
    model: str = DEFAULT_MODEL,
    max_tokens: int = DEFAULT_MAX_TOKENS,
    temperature: float = DEFAULT_TEMPERATURE,
) -> AiRequest:
    """Assemble the ordered AI request for *message*.

    Args:
        message: The inbound message.
        clean_body: Its normalized body.
        system_prompt: Operator system prompt; a built-in default is used
            when empty.
        include_recipient_instruction: Append the recipient-directive
            instruction segment.
        model: Model ID.
        max_tokens: Output token cap.
        temperature: Sampling temperature.

    Returns:
        An ``AiRequest``.
    """
    segments = [
        PromptSegment(role=SegmentRole.SYSTEM, text=system_prompt or DEFAULT_SYSTEM_PROMPT),
        PromptSegment(role=SegmentRole.USER, text=build_prompt(message, clean_body)),
        PromptSegment(role=SegmentRole.SYSTEM, text=FORMATTING_INSTRUCTION),
    ]
    if include_recipient_instruction:
        segments.append(PromptSegment(role=SegmentRole.SYSTEM, text=RECIPIENT_INSTRUCTION))

    return AiRequest(
        segments=tuple(segments),
        model=model,
        max_tokens=max_tokens,
        temperature=temperature,
    )


def generate_reply(request: AiRequest, client: Anthropic) -> str:
    """Send *request* to the Anthropic API and return the reply text.

    Args:
        request: The assembled request.
        client: Configured Anthropic client instance.

    Returns:
        The raw reply text.

    Raises:
        AiProviderError: On any API error or an empty / non-text response.
    """
    system = [
        {"type": "text", "text": segment.text}
        for segment in request.segments
        if segment.role is SegmentRole.SYSTEM
    ]
    messages = [
        {"role": "user", "content": segment.text}
        for segment in request.segments
        if segment.role is SegmentRole.USER
    ]

    try:
        response = client.messages.create(
            model=request.model,
            max_tokens=request.max_tokens,
            temperature=request.temperature,
            system=system,  # type: ignore[arg-type]
            messages=messages,  # type: ignore[arg-type]
        )
    except anthropic.APIError as exc:
        raise AiProviderError(f"AI provider request failed: {exc}") from exc

    text = "".join(
        block.text for block in response.content if getattr(block, "type", None) == "text"
    )
    if not text.strip():
        raise AiProviderError("Invalid API response format")

    logger.info(
        "ai_reply_generated",
        model=request.model,
        response_length=len(text),
        input_tokens=getattr(response.usage, "input_tokens", None),
        output_tokens=getattr(response.usage, "output_tokens", None),
    )
    return text
