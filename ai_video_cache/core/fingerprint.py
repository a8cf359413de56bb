"""
Cache key derivation.

Derives stable, content-addressed fingerprints for AI artifacts.
"""

import hashlib
import json
from dataclasses import asdict, is_dataclass
from datetime import date
from decimal import Decimal
from typing import Any, Optional

DEFAULT_LANGUAGE = "en"


def _json_default(value: Any) -> Any:
    """Serialize the non-JSON scalars that show up in stored segments."""
    if isinstance(value, Decimal):
        return str(value)
    if isinstance(value, date):
        return value.isoformat()
    if is_dataclass(value) and not isinstance(value, type):
        return asdict(value)
    raise TypeError(f"Cannot fingerprint value of type {type(value).__name__}")


def content_hash(data: bytes) -> str:
    """Hash the full byte content of a binary input.

    The whole payload is hashed, never a sample, so two audio files that
    share a prefix can not collide.

    Args:
        data: Raw bytes (e.g. an audio file)

    Returns:
        SHA-256 hex digest
    """
    return hashlib.sha256(data).hexdigest()


def canonicalize(value: Any) -> str:
    """Reduce an input to a deterministic string form.

    Strings pass through unchanged. Everything else is serialized as JSON
    with sorted keys and compact separators, so logically equal inputs
    always produce the same text.

    Args:
        value: Text or JSON-serializable structure; Decimal and date
            values are written as strings

    Returns:
        Canonical string form of the input

    Raises:
        TypeError: If the input holds values that have no stable text form
    """
    if isinstance(value, str):
        return value
    if is_dataclass(value) and not isinstance(value, type):
        value = asdict(value)
    return json.dumps(
        value, sort_keys=True, separators=(",", ":"), ensure_ascii=False, default=_json_default
    )


def audio_fingerprint_input(audio_bytes: bytes, language: Optional[str] = None) -> str:
    """Build the canonical input for a transcription request.

    Args:
        audio_bytes: Full audio content
        language: Requested transcription language (defaults to English)

    Returns:
        Content hash combined with the language discriminator
    """
    return f"{content_hash(audio_bytes)}:{language or DEFAULT_LANGUAGE}"


def fingerprint(artifact_kind: str, model_id: str, canonical_input: Any) -> str:
    """Derive the cache key for an artifact.

    Args:
        artifact_kind: Artifact category (transcription, highlights, ...)
        model_id: Model that produces the artifact
        canonical_input: Input, canonicalized with :func:`canonicalize`

    Returns:
        SHA-256 hex digest identifying (kind, model, input)
    """
    kind = getattr(artifact_kind, "value", artifact_kind)
    material = f"{kind}:{model_id}:{canonicalize(canonical_input)}"
    return hashlib.sha256(material.encode("utf-8")).hexdigest()
