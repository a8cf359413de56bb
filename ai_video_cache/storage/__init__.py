"""
Storage layer for AI Video Cache.

SQLite persistence for cache entries and the usage ledger.
"""
