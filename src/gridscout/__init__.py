"""gridscout: scout report ingestion, tenant grid state and notifications."""

__version__ = "0.1.0"
