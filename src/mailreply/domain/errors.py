"""Domain-specific exception classes for the mail auto-reply service."""


class MailReplyError(Exception):
    """Base class for all domain errors in the mail auto-reply service."""


class MailStoreConnectionError(MailReplyError):
    """Raised when the mailbox cannot be opened at the start of a run.

    This is the only fatal error: no messages are processed and the
    process exits with a non-zero status.

    Attributes:
        host: The mailbox host that could not be reached.
    """

    def __init__(self, host: str, reason: str) -> None:
        self.host = host
        self.reason = reason
        super().__init__(f"Cannot open mailbox on '{host}': {reason}")


class AiProviderError(MailReplyError):
    """Raised when the AI provider fails or returns an unusable response."""
