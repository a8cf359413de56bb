"""
OpenAI provider.

Implements the AI provider contract on the OpenAI API.
"""

import logging
from typing import Any, Dict, List, Optional

from openai import OpenAI

from .provider import (
    CompletionResult,
    EmbeddingResult,
    TranscriptionResult,
    TranscriptionSegment,
)

logger = logging.getLogger(__name__)


class OpenAIProvider:
    """OpenAI-backed speech-to-text, chat completion and embeddings.

    Calls are made exactly once; retries and timeouts are left to the
    OpenAI client. Failures are loud.
    """

    def __init__(self, client: Optional[OpenAI] = None):
        """Initialize the provider.

        Args:
            client: OpenAI client (defaults to one configured from the
                environment, e.g. ``OPENAI_API_KEY``)
        """
        self.client = client or OpenAI()

    def transcribe(
        self,
        audio_bytes: bytes,
        language: Optional[str] = None,
        model: str = "whisper-1",
        filename: str = "audio.wav"
    ) -> TranscriptionResult:
        """Transcribe audio with segment timestamps.

        Args:
            audio_bytes: Full audio content
            language: Optional ISO-639-1 language hint
            model: Transcription model
            filename: File name sent with the upload (sets the format)

        Returns:
            TranscriptionResult with duration and segments

        Raises:
            ValueError: If audio is empty
            OpenAI API errors: Propagated without modification
        """
        if not audio_bytes:
            raise ValueError("audio_bytes is required and cannot be empty")

        params: Dict[str, Any] = {
            "file": (filename, audio_bytes),
            "model": model,
            "response_format": "verbose_json",
            "timestamp_granularities": ["segment"],
        }
        if language:
            params["language"] = language

        response = self.client.audio.transcriptions.create(**params)

        segments = [
            TranscriptionSegment(
                start=float(segment.start),
                end=float(segment.end),
                text=segment.text,
                no_speech_prob=float(getattr(segment, "no_speech_prob", 0.0) or 0.0)
            )
            for segment in (response.segments or [])
        ]
        return TranscriptionResult(
            text=response.text,
            duration_seconds=float(response.duration or 0.0),
            language=getattr(response, "language", None) or language,
            segments=segments
        )

    def complete(
        self,
        prompt: str,
        system_prompt: str,
        model: str,
        temperature: float,
        max_tokens: int,
        json_mode: bool = False
    ) -> CompletionResult:
        """Create a chat completion.

        Args:
            prompt: User message
            system_prompt: System message
            model: Chat model
            temperature: Sampling temperature
            max_tokens: Maximum tokens to generate
            json_mode: Constrain the reply to a JSON object

        Returns:
            CompletionResult with the reply text and token counts

        Raises:
            ValueError: If the response has no usage information
            OpenAI API errors: Propagated without modification
        """
        params: Dict[str, Any] = {
            "model": model,
            "messages": [
                {"role": "system", "content": system_prompt},
                {"role": "user", "content": prompt},
            ],
            "temperature": temperature,
            "max_tokens": max_tokens,
        }
        if json_mode:
            params["response_format"] = {"type": "json_object"}

        response = self.client.chat.completions.create(**params)

        usage = response.usage
        if not usage:
            raise ValueError("OpenAI response missing usage information")

        return CompletionResult(
            text=response.choices[0].message.content or "",
            input_tokens=usage.prompt_tokens,
            output_tokens=usage.completion_tokens
        )

    def embed(self, texts: List[str], model: str, dimensions: int) -> EmbeddingResult:
        """Embed a batch of texts.

        Args:
            texts: Input texts
            model: Embedding model
            dimensions: Vector size

        Returns:
            EmbeddingResult with vectors in input order

        Raises:
            ValueError: If texts is empty
            OpenAI API errors: Propagated without modification
        """
        if not texts:
            raise ValueError("texts is required and cannot be empty")

        response = self.client.embeddings.create(
            model=model,
            input=texts,
            dimensions=dimensions
        )

        data = sorted(response.data, key=lambda item: item.index)
        usage = response.usage
        return EmbeddingResult(
            vectors=[list(item.embedding) for item in data],
            input_tokens=usage.prompt_tokens if usage else 0
        )
