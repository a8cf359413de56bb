"""
Configuration for AI Video Cache.
"""
