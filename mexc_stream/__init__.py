"""Multiplexed real-time client for MEXC spot push streams."""

__version__ = "0.1.0"
