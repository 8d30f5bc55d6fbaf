"""Peakbook QR: print-ready QR check-in stickers as SVG."""

__version__ = "1.0.0"
