"""codebro: budget-conscious project context for chat completion models."""

__version__ = "1.1.0"
