"""Command line interface."""

from mexc_stream.cli.app import app, main

__all__ = ["app", "main"]
