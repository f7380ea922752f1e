"""LingoGuard: security and rate limiting layer for the language-learning platform."""

__version__ = "1.0.0"
