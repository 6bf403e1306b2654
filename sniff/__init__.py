"""sniff: AI agents for work-tracking webhooks."""

__version__ = "0.1.0"
