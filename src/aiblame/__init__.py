"""ai-blame — line-level AI attribution stored in git notes."""

__version__ = "0.1.0"
