"""
SDK for AI Video Cache.

Provides cached access to transcription, transcript analysis and
embeddings.
"""

from .cached_services import AIServiceError, CachedAIServices, build_services
from .openai_client import OpenAIProvider

__all__ = ["AIServiceError", "CachedAIServices", "OpenAIProvider", "build_services"]
