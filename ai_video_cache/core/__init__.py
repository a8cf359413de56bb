"""
Core modules for AI Video Cache.

This package contains fingerprinting, pricing, the cache store,
the usage ledger, budget alerting, and cache analytics.
"""
