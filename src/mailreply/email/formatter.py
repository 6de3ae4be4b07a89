"""HTML and plain-text bodies for replies and notifications.

AI replies are written in Markdown and rendered to HTML with the
``markdown`` library.  When thread quoting is enabled both bodies end with
the original message, Outlook style.
"""

from __future__ import annotations

import html
import re
from datetime import datetime

import markdown

from mailreply.email.models import InboundMessage, OutboundEmail
from mailreply.email.threading import build_reply_headers
from mailreply.routing.models import RoutingDecision

_MARKDOWN_EXTENSIONS = ["extra", "sane_lists"]
_TAG_RE = re.compile(r"<[^>]+>")

_BODY_STYLE = "font-family: Arial, sans-serif; margin-bottom: 20px;"
_QUOTE_STYLE = "border-top: 1px solid #ccc; margin-top: 20px; padding-top: 10px; color: #777;"
_QUOTED_BODY_STYLE = "margin-top: 20px; padding: 10px; border-left: 4px solid #ccc;"


def _sent_at(original: InboundMessage, now: datetime | None) -> str:
    if original.date:
        return original.date
    return (now or datetime.now()).strftime("%Y-%m-%d %H:%M:%S")


def format_html_reply(
    content: str,
    original: InboundMessage,
    include_thread: bool = False,
    now: datetime | None = None,
) -> str:
    """Render the reply content as HTML, optionally quoting the original.

    Args:
        content: Markdown reply text.
        original: The message being answered.
        include_thread: Append the quoted original message.
        now: Timestamp used for "Sent" when the original has no Date.

    Returns:
        The HTML body.
    """
    rendered = markdown.markdown(content, extensions=_MARKDOWN_EXTENSIONS)
    parts = [f'<div style="{_BODY_STYLE}">', rendered, "</div>"]
    if not include_thread:
        return "".join(parts)

    esc = html.escape
    parts.append(f'<div style="{_QUOTE_STYLE}">')
    parts.append(
        f"<p><strong>From:</strong> {esc(original.from_name)} "
        f"&lt;{esc(original.from_email)}&gt;<br>"
    )
    parts.append(f"<strong>Sent:</strong> {esc(_sent_at(original, now))}<br>")
    parts.append(f"<strong>To:</strong> {esc(', '.join(original.to))}<br>")
    if original.cc:
        parts.append(f"<strong>Cc:</strong> {esc(', '.join(original.cc))}<br>")
    parts.append(f"<strong>Subject:</strong> {esc(original.subject)}</p>")

    if original.html_body:
        parts.append(f'<div style="{_QUOTED_BODY_STYLE}">{original.html_body}</div>')
    else:
        parts.append(
            f'<div style="{_QUOTED_BODY_STYLE} white-space: pre-wrap;">'
            f"{esc(original.body)}</div>"
        )
    parts.append("</div>")
    return "".join(parts)


def format_text_reply(
    content: str,
    original: InboundMessage,
    include_thread: bool = False,
    now: datetime | None = None,
) -> str:
    """Plain-text alternative of the reply."""
    text = _TAG_RE.sub("", content) + "\n\n"
    if not include_thread:
        return text

    lines = [
        "-----Original Message-----",
        f"From: {original.from_name} <{original.from_email}>",
        f"Sent: {_sent_at(original, now)}",
        f"To: {', '.join(original.to)}",
    ]
    if original.cc:
        lines.append(f"Cc: {', '.join(original.cc)}")
    lines.append(f"Subject: {original.subject}")
    return text + "\n".join(lines) + "\n\n" + original.body


def build_reply(
    original: InboundMessage,
    content: str,
    decision: RoutingDecision,
    include_thread: bool = False,
    now: datetime | None = None,
) -> OutboundEmail:
    """Assemble the threaded ``OutboundEmail`` for an AI reply."""
    headers = build_reply_headers(original)
    return OutboundEmail(
        to=decision.to,
        cc=decision.cc,
        subject=headers["Subject"],
        html_body=format_html_reply(content, original, include_thread, now),
        text_body=format_text_reply(content, original, include_thread, now),
        in_reply_to=headers["In-Reply-To"],
        references=headers["References"],
    )


def build_notification(to: str, subject: str, message: str) -> OutboundEmail:
    """A plain notice to a single recipient, with an escaped HTML rendition."""
    html_body = (
        '<div style="font-family: Arial, sans-serif;">'
        + html.escape(message).replace("\n", "<br>\n")
        + "</div>"
    )
    return OutboundEmail(to=(to,), subject=subject, html_body=html_body, text_body=message)
