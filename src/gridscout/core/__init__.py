"""Core domain package for gridscout.

Core contains report parsing, tenant state and notification logic without
any Telegram or storage-specific code, keeping the business logic portable.
"""
