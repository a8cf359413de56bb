"""
AI Video Cache.

Caching and cost accounting for the AI calls behind video transcription
and analysis.
"""

__version__ = "0.1.0"
