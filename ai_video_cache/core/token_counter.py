"""
Token counting and usage quantities.

Holds the quantities recorded for each AI invocation and the rough
estimators used when a result is served from cache.
"""

import math
from dataclasses import dataclass
from typing import Iterable, Optional

# Characters per token for transcript prompts (English prose)
TRANSCRIPT_CHARS_PER_TOKEN = 3.5
# Characters per token for short embedding inputs
EMBEDDING_CHARS_PER_TOKEN = 4.0


@dataclass(frozen=True)
class UsageQuantities:
    """Billable quantities of a single AI invocation.

    Only the fields relevant to the invocation kind are populated:
    tokens for completions and embeddings, minutes for audio.
    """
    input_tokens: Optional[int] = None
    output_tokens: Optional[int] = None
    input_minutes: Optional[float] = None

    @property
    def total_tokens(self) -> int:
        """Total tokens used (input + output)."""
        return (self.input_tokens or 0) + (self.output_tokens or 0)


def estimate_tokens(text: str, chars_per_token: float = TRANSCRIPT_CHARS_PER_TOKEN) -> int:
    """Estimate the token count of a text without a tokenizer.

    Args:
        text: Input text
        chars_per_token: Average characters per token

    Returns:
        Estimated token count, rounded up
    """
    if not text:
        return 0
    return int(math.ceil(len(text) / chars_per_token))


def estimate_batch_tokens(texts: Iterable[str]) -> int:
    """Estimate tokens for a batch of embedding inputs joined by spaces."""
    return estimate_tokens(" ".join(texts), EMBEDDING_CHARS_PER_TOKEN)


def seconds_to_minutes(seconds: Optional[float]) -> Optional[float]:
    """Convert an audio duration to billable minutes."""
    if seconds is None:
        return None
    return float(seconds) / 60.0
