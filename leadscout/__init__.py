"""Leadscout - business registry ingestion and lead scoring."""

__version__ = "0.1.0"
