"""screener: multi-stage content moderation for user-submitted text."""

__version__ = "0.1.0"
