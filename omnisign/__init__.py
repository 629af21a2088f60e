"""Signing and completion monitoring for cross-chain OneBalance quotes."""

__version__ = "0.1.0"
