"""Adapters that connect the core ports to SQLite and Telegram."""
