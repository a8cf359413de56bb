"""
Cached AI services.

Wraps every AI capability in the same sequence: fingerprint the input,
look it up in the cache, and on a miss call the provider once, cache the
validated result and record its usage.
"""

import json
import logging
from pathlib import Path
from typing import Any, Callable, Dict, List, Mapping, Optional, Sequence, Tuple, TypeVar, Union

from ai_video_cache.config.loader import ServiceConfig, default_config
from ai_video_cache.core.cache import CacheStore
from ai_video_cache.core.fingerprint import audio_fingerprint_input, canonicalize
from ai_video_cache.core.ledger import UsageLedger
from ai_video_cache.core.token_counter import (
    UsageQuantities,
    estimate_batch_tokens,
    estimate_tokens,
    seconds_to_minutes,
)
from ai_video_cache.storage.models import ArtifactKind, UsageKind
from ai_video_cache.storage.repository import (
    CacheRepository,
    UsageRepository,
    initialize_schema,
)

from . import prompts
from .openai_client import OpenAIProvider
from .provider import AIProvider

logger = logging.getLogger(__name__)

T = TypeVar("T")

# Estimated completion tokens recorded for cache hits
HIGHLIGHTS_OUTPUT_ESTIMATE = 500
SUMMARY_OUTPUT_ESTIMATE = 100
TOPICS_OUTPUT_ESTIMATE = 50

SUMMARY_MAX_TOKENS = 500
TOPICS_TEMPERATURE = 0.3
TOPICS_MAX_TOKENS = 200

_CAPABILITY_LABELS = {
    ArtifactKind.TRANSCRIPTION: "Transcription",
    ArtifactKind.HIGHLIGHTS: "Highlight generation",
    ArtifactKind.SUMMARY: "Summary generation",
    ArtifactKind.TOPICS: "Topic extraction",
    ArtifactKind.EMBEDDINGS: "Embedding generation",
}


class AIServiceError(Exception):
    """Raised when an AI capability fails or returns malformed output.

    The underlying cause is chained as ``__cause__``.
    """

    def __init__(self, capability: str, message: str):
        super().__init__(f"{capability} failed: {message}")
        self.capability = capability


def _json_size(value: Any) -> int:
    return len(json.dumps(value))


class CachedAIServices:
    """AI capabilities served from cache when possible.

    Every successful call, hit or miss, appends exactly one usage record
    (one per batch for embeddings). Failed calls write neither a cache
    entry nor a usage record.
    """

    def __init__(
        self,
        provider: AIProvider,
        cache: CacheStore,
        ledger: UsageLedger,
        config: Optional[ServiceConfig] = None
    ):
        """Initialize the services.

        Args:
            provider: Real AI provider used on cache misses
            cache: Cache store for AI outputs
            ledger: Usage ledger
            config: Models, TTLs and failure policy (defaults if omitted)
        """
        self.provider = provider
        self.cache = cache
        self.ledger = ledger
        self.config = config or default_config()

    # ------------------------------------------------------------------
    # Shared invocation sequence
    # ------------------------------------------------------------------

    def _invoke(
        self,
        kind: ArtifactKind,
        usage_kind: UsageKind,
        model_id: str,
        fingerprint_input: Any,
        call_provider: Callable[[], Tuple[Any, UsageQuantities]],
        hit_quantities: Callable[[Any], UsageQuantities],
        input_size: Optional[int] = None,
        video_id: Optional[str] = None,
        user_id: Optional[str] = None
    ) -> Any:
        """Serve one artifact from cache, or from the provider on a miss.

        ``call_provider`` must return the validated payload and the actual
        quantities consumed; any exception it raises is wrapped in
        :class:`AIServiceError` and nothing is cached or recorded, as is
        an input that can not be fingerprinted.
        """
        try:
            canonicalize(fingerprint_input)
        except (TypeError, ValueError) as e:
            raise AIServiceError(_CAPABILITY_LABELS[kind], str(e)) from e

        cached = self.cache.get(kind, fingerprint_input, model_id)
        if cached is not None:
            self.ledger.record(
                usage_kind, model_id, hit_quantities(cached),
                cached=True, video_id=video_id, user_id=user_id
            )
            return cached

        try:
            payload, quantities = call_provider()
        except AIServiceError:
            raise
        except Exception as e:
            raise AIServiceError(_CAPABILITY_LABELS[kind], str(e)) from e

        self.cache.set(
            kind,
            fingerprint_input,
            model_id,
            payload,
            ttl_days=self.config.cache.ttl_for(kind),
            input_size=input_size,
            output_size=_json_size(payload)
        )
        self.ledger.record(
            usage_kind, model_id, quantities,
            cached=False, video_id=video_id, user_id=user_id
        )
        return payload

    def _best_effort(self, kind: ArtifactKind, empty: T, func: Callable[[], T]) -> T:
        """Run a capability, degrading to ``empty`` if it is configured best-effort."""
        try:
            return func()
        except AIServiceError as e:
            if not self.config.is_best_effort(kind):
                raise
            logger.warning("%s; continuing without %s", e, kind.value)
            return empty

    # ------------------------------------------------------------------
    # Transcription
    # ------------------------------------------------------------------

    def transcribe_audio(
        self,
        audio_path: Union[str, Path],
        language: Optional[str] = None,
        video_id: Optional[str] = None,
        user_id: Optional[str] = None
    ) -> Dict[str, Any]:
        """Transcribe an audio file.

        Args:
            audio_path: Path to the audio file
            language: Transcription language (defaults to the configured one)
            video_id: Optional video attribution
            user_id: Optional user attribution

        Returns:
            Transcription payload with ``text``, ``duration`` (seconds),
            ``language`` and ``segments``

        Raises:
            AIServiceError: If the file can not be read or the provider fails
        """
        path = Path(audio_path)
        logger.info("Starting cached transcription for: %s", path)
        try:
            audio_bytes = path.read_bytes()
        except OSError as e:
            raise AIServiceError(_CAPABILITY_LABELS[ArtifactKind.TRANSCRIPTION], str(e)) from e
        return self.transcribe_bytes(
            audio_bytes, language=language, filename=path.name,
            video_id=video_id, user_id=user_id
        )

    def transcribe_bytes(
        self,
        audio_bytes: bytes,
        language: Optional[str] = None,
        filename: str = "audio.wav",
        video_id: Optional[str] = None,
        user_id: Optional[str] = None
    ) -> Dict[str, Any]:
        """Transcribe in-memory audio. See :meth:`transcribe_audio`."""
        settings = self.config.transcription
        language = language or settings.language

        def call_provider() -> Tuple[Dict[str, Any], UsageQuantities]:
            result = self.provider.transcribe(
                audio_bytes, language=language, model=settings.model, filename=filename
            )
            payload = result.to_payload()
            if not isinstance(payload["text"], str):
                raise ValueError("Invalid transcription response format")
            logger.info("Transcription completed. Duration: %ss", result.duration_seconds)
            return payload, UsageQuantities(
                input_minutes=seconds_to_minutes(result.duration_seconds)
            )

        def hit_quantities(payload: Dict[str, Any]) -> UsageQuantities:
            return UsageQuantities(input_minutes=seconds_to_minutes(payload.get("duration")))

        return self._invoke(
            ArtifactKind.TRANSCRIPTION,
            UsageKind.TRANSCRIPTION,
            settings.model,
            audio_fingerprint_input(audio_bytes, language),
            call_provider,
            hit_quantities,
            input_size=len(audio_bytes),
            video_id=video_id,
            user_id=user_id
        )

    # ------------------------------------------------------------------
    # Transcript analysis
    # ------------------------------------------------------------------

    def generate_highlights(
        self,
        transcript: str,
        segments: Sequence[Mapping[str, Any]],
        video_id: Optional[str] = None,
        user_id: Optional[str] = None
    ) -> Dict[str, Any]:
        """Identify key moments in a transcript.

        Args:
            transcript: Full transcript text
            segments: Timed segments with ``text``, ``start`` and ``end``
            video_id: Optional video attribution
            user_id: Optional user attribution

        Returns:
            Dict with a ``highlights`` list, an overall ``summary`` and
            ``keyTopics``

        Raises:
            AIServiceError: If the provider fails or the reply has no
                highlights list
        """
        settings = self.config.highlights
        segment_list = [dict(segment) for segment in segments]

        def call_provider() -> Tuple[Dict[str, Any], UsageQuantities]:
            result = self.provider.complete(
                prompts.highlights_prompt(segment_list),
                prompts.HIGHLIGHTS_SYSTEM_PROMPT,
                model=settings.model,
                temperature=settings.temperature,
                max_tokens=settings.max_tokens,
                json_mode=True
            )
            payload = json.loads(result.text or "{}")
            if not isinstance(payload, dict) or not isinstance(payload.get("highlights"), list):
                raise ValueError("Invalid highlights response format")
            logger.info("Generated %d highlights", len(payload["highlights"]))
            return payload, UsageQuantities(
                input_tokens=result.input_tokens, output_tokens=result.output_tokens
            )

        def hit_quantities(_payload: Dict[str, Any]) -> UsageQuantities:
            return UsageQuantities(
                input_tokens=estimate_tokens(transcript),
                output_tokens=HIGHLIGHTS_OUTPUT_ESTIMATE
            )

        return self._best_effort(
            ArtifactKind.HIGHLIGHTS,
            {"highlights": [], "summary": "", "keyTopics": []},
            lambda: self._invoke(
                ArtifactKind.HIGHLIGHTS,
                UsageKind.COMPLETION,
                settings.model,
                {"transcript": transcript, "segments": segment_list},
                call_provider,
                hit_quantities,
                input_size=len(transcript),
                video_id=video_id,
                user_id=user_id
            )
        )

    def generate_summary(
        self,
        transcript: str,
        video_id: Optional[str] = None,
        user_id: Optional[str] = None
    ) -> str:
        """Summarize a transcript in 150-300 words.

        Raises:
            AIServiceError: If the provider fails or returns an empty summary
        """
        settings = self.config.completion

        def call_provider() -> Tuple[str, UsageQuantities]:
            result = self.provider.complete(
                prompts.summary_prompt(transcript),
                prompts.SUMMARY_SYSTEM_PROMPT,
                model=settings.model,
                temperature=settings.temperature,
                max_tokens=SUMMARY_MAX_TOKENS
            )
            summary = (result.text or "").strip()
            if not summary:
                raise ValueError("Empty summary response")
            return summary, UsageQuantities(
                input_tokens=result.input_tokens, output_tokens=result.output_tokens
            )

        def hit_quantities(_payload: str) -> UsageQuantities:
            return UsageQuantities(
                input_tokens=estimate_tokens(transcript),
                output_tokens=SUMMARY_OUTPUT_ESTIMATE
            )

        return self._best_effort(
            ArtifactKind.SUMMARY,
            "",
            lambda: self._invoke(
                ArtifactKind.SUMMARY,
                UsageKind.COMPLETION,
                settings.model,
                transcript,
                call_provider,
                hit_quantities,
                input_size=len(transcript),
                video_id=video_id,
                user_id=user_id
            )
        )

    def extract_key_topics(
        self,
        transcript: str,
        video_id: Optional[str] = None,
        user_id: Optional[str] = None
    ) -> List[str]:
        """Extract 5-10 key topics from a transcript.

        Topic extraction is best-effort by default: failures are logged
        and an empty list is returned.

        Raises:
            AIServiceError: If the provider fails and topics are not
                configured best-effort
        """
        settings = self.config.completion

        def call_provider() -> Tuple[List[str], UsageQuantities]:
            result = self.provider.complete(
                prompts.topics_prompt(transcript),
                prompts.TOPICS_SYSTEM_PROMPT,
                model=settings.model,
                temperature=TOPICS_TEMPERATURE,
                max_tokens=TOPICS_MAX_TOKENS,
                json_mode=True
            )
            parsed = json.loads(result.text or "{}")
            topics = parsed.get("topics", []) if isinstance(parsed, dict) else None
            if not isinstance(topics, list) or not all(isinstance(t, str) for t in topics):
                raise ValueError("Invalid topics response format")
            logger.info("Extracted %d key topics", len(topics))
            return topics, UsageQuantities(
                input_tokens=result.input_tokens, output_tokens=result.output_tokens
            )

        def hit_quantities(_payload: List[str]) -> UsageQuantities:
            return UsageQuantities(
                input_tokens=estimate_tokens(transcript),
                output_tokens=TOPICS_OUTPUT_ESTIMATE
            )

        return self._best_effort(
            ArtifactKind.TOPICS,
            [],
            lambda: self._invoke(
                ArtifactKind.TOPICS,
                UsageKind.COMPLETION,
                settings.model,
                transcript,
                call_provider,
                hit_quantities,
                input_size=len(transcript),
                video_id=video_id,
                user_id=user_id
            )
        )

    # ------------------------------------------------------------------
    # Embeddings
    # ------------------------------------------------------------------

    def generate_embeddings(
        self,
        texts: Sequence[str],
        video_id: Optional[str] = None,
        user_id: Optional[str] = None
    ) -> List[List[float]]:
        """Embed texts in fixed-size batches, each cached independently.

        Batches run sequentially, so one call may mix cache hits and
        provider calls. The output order always matches ``texts``.

        Args:
            texts: Texts to embed
            video_id: Optional video attribution
            user_id: Optional user attribution

        Returns:
            One vector per input text

        Raises:
            AIServiceError: If a provider call fails or returns the wrong
                number of vectors
        """
        settings = self.config.embeddings
        texts = list(texts)
        embeddings: List[List[float]] = []
        logger.info("Generating cached embeddings for %d text segments", len(texts))

        for start in range(0, len(texts), settings.batch_size):
            batch = texts[start:start + settings.batch_size]
            batch_number = start // settings.batch_size + 1

            def call_provider(batch: List[str] = batch) -> Tuple[List[List[float]], UsageQuantities]:
                result = self.provider.embed(
                    batch, model=settings.model, dimensions=settings.dimensions
                )
                if len(result.vectors) != len(batch):
                    raise ValueError(
                        f"Expected {len(batch)} embeddings, got {len(result.vectors)}"
                    )
                return result.vectors, UsageQuantities(input_tokens=result.input_tokens)

            def hit_quantities(_payload: Any, batch: List[str] = batch) -> UsageQuantities:
                return UsageQuantities(input_tokens=estimate_batch_tokens(batch))

            vectors = self._invoke(
                ArtifactKind.EMBEDDINGS,
                UsageKind.EMBEDDING,
                settings.model,
                {"texts": batch, "dimensions": settings.dimensions},
                call_provider,
                hit_quantities,
                input_size=len(" ".join(batch)),
                video_id=video_id,
                user_id=user_id
            )
            embeddings.extend(vectors)
            logger.debug("Embeddings ready for batch %d", batch_number)

        logger.info("All embeddings generated/retrieved. Total: %d", len(embeddings))
        return embeddings


def build_services(
    config: Optional[ServiceConfig] = None,
    provider: Optional[AIProvider] = None
) -> CachedAIServices:
    """Wire the cached services against the configured SQLite database.

    Args:
        config: Service configuration (defaults if omitted)
        provider: AI provider (defaults to OpenAI)

    Returns:
        Ready-to-use CachedAIServices
    """
    config = config or default_config()
    initialize_schema(config.database_path)
    if provider is None:
        provider = OpenAIProvider()
    return CachedAIServices(
        provider=provider,
        cache=CacheStore(CacheRepository(config.database_path)),
        ledger=UsageLedger(UsageRepository(config.database_path)),
        config=config
    )
