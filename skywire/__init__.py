"""Overlay networking: keys, stcp transport, transport entries and settlement, visor configuration."""

__version__ = "0.1.0"