"""Seguimiento de guías LAAR Courier sobre Google Sheets."""

__version__ = "1.0.0"
