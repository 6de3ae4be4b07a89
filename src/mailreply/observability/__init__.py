"""Error reporting: Sentry SDK setup and the structlog bridge."""
