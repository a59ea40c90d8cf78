"""Crypto carbon tracker: market snapshots, footprints and personal portfolios."""

__version__ = "0.1.0"
