"""Anthropic client factory and model configuration for reply generation."""

from anthropic import Anthropic

DEFAULT_MODEL = "claude-sonnet-4-5-20250929"

# Generation defaults for reply composition
DEFAULT_MAX_TOKENS = 7000
DEFAULT_TEMPERATURE = 0.7


def get_anthropic_client(api_key: str | None = None) -> Anthropic:
    """Create an Anthropic client.

    Without *api_key* the constructor reads ANTHROPIC_API_KEY from the
    environment.  SDK-level retries are disabled: a failed AI call is
    reported to the sender instead of being retried.

    Args:
        api_key: Explicit API key, or ``None`` to use the environment.

    Returns:
        Configured Anthropic client instance.
    """
    return Anthropic(api_key=api_key or None, max_retries=0)
