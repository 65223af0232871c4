"""Gift registry payments and gateway webhook reconciliation."""

__version__ = "0.1.0"
