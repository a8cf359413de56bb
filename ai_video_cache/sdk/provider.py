"""
AI provider contract.

The capabilities the cached services need from an AI provider, and the
results the provider returns.
"""

from dataclasses import asdict, dataclass, field
from typing import Any, Dict, List, Optional, Protocol


@dataclass(frozen=True)
class TranscriptionSegment:
    """A timed span of transcribed speech."""
    start: float
    end: float
    text: str
    no_speech_prob: float = 0.0


@dataclass(frozen=True)
class TranscriptionResult:
    """Speech-to-text output for one audio file."""
    text: str
    duration_seconds: float
    language: Optional[str] = None
    segments: List[TranscriptionSegment] = field(default_factory=list)

    def to_payload(self) -> Dict[str, Any]:
        """JSON-serializable form stored in the cache and returned to callers."""
        return {
            "text": self.text,
            "duration": self.duration_seconds,
            "language": self.language,
            "segments": [asdict(segment) for segment in self.segments],
        }


@dataclass(frozen=True)
class CompletionResult:
    """Chat completion text with its token usage."""
    text: str
    input_tokens: int
    output_tokens: int


@dataclass(frozen=True)
class EmbeddingResult:
    """One vector per input text, in input order."""
    vectors: List[List[float]]
    input_tokens: int


class AIProvider(Protocol):
    """Real AI calls. Implementations may raise on transient or permanent errors."""

    def transcribe(
        self,
        audio_bytes: bytes,
        language: Optional[str] = None,
        model: str = "whisper-1",
        filename: str = "audio.wav"
    ) -> TranscriptionResult:
        ...

    def complete(
        self,
        prompt: str,
        system_prompt: str,
        model: str,
        temperature: float,
        max_tokens: int,
        json_mode: bool = False
    ) -> CompletionResult:
        ...

    def embed(self, texts: List[str], model: str, dimensions: int) -> EmbeddingResult:
        ...
