"""
Prompt templates for transcript analysis.
"""

from typing import Any, Mapping, Sequence

HIGHLIGHTS_SYSTEM_PROMPT = (
    "You analyze video transcripts and identify key highlights and moments. "
    "Always respond with valid JSON."
)

SUMMARY_SYSTEM_PROMPT = (
    "You write concise, informative summaries of video content."
)

TOPICS_SYSTEM_PROMPT = (
    "You extract key topics from text. Always respond with a JSON object."
)

HIGHLIGHT_TYPES = ("decision", "action_item", "achievement", "question", "key_point")


def format_segments(segments: Sequence[Mapping[str, Any]]) -> str:
    """Render segments as ``[start - end]: text`` lines."""
    return "\n".join(
        f"[{float(segment['start']):.1f}s - {float(segment['end']):.1f}s]: {segment['text']}"
        for segment in segments
    )


def highlights_prompt(segments: Sequence[Mapping[str, Any]]) -> str:
    return f"""
Identify the key highlights in this video transcript. Look for:
1. Decisions and conclusions
2. Action items and tasks
3. Achievements and milestones
4. Notable questions or discussions
5. Main points and insights

For each highlight give:
- type: one of {", ".join(HIGHLIGHT_TYPES)}
- summary: short description, at most 100 characters
- confidence: score between 0 and 1
- startTime and endTime taken from the segments

Transcript segments with timestamps:
{format_segments(segments)}

Respond with JSON in this shape:
{{
  "highlights": [
    {{
      "type": "decision",
      "text": "Original text from the transcript",
      "startTime": 123.5,
      "endTime": 156.2,
      "confidence": 0.85,
      "summary": "Short description"
    }}
  ],
  "summary": "Overall summary of the video",
  "keyTopics": ["topic1", "topic2"]
}}
"""


def summary_prompt(transcript: str) -> str:
    return f"""
Summarize this video transcript in 150-300 words, covering:
- Main topics discussed
- Key points and insights
- Outcomes or decisions
- Overall theme and purpose

Transcript:
{transcript}
"""


def topics_prompt(transcript: str) -> str:
    return f"""
Extract 5-10 key topics or themes discussed in this transcript.
Respond with a JSON object holding the topics as a list of strings.

Transcript:
{transcript}

Example response: {{"topics": ["machine learning", "project planning", "team collaboration"]}}
"""
