"""Configuration module for the MEXC stream client."""

from mexc_stream.config.settings import ReconnectSettings, StreamSettings, get_settings

__all__ = ["ReconnectSettings", "StreamSettings", "get_settings"]
