"""
Video analysis job handlers.

Runs the AI steps of the video pipeline and queues the follow-on work
each step unlocks.
"""

import logging
from dataclasses import dataclass, field
from typing import Any, Dict, List, Protocol, Tuple

from .cached_services import CachedAIServices

logger = logging.getLogger(__name__)

JOB_TRANSCRIBE = "transcribe"
JOB_GENERATE_EMBEDDINGS = "generate-embeddings"
JOB_GENERATE_HIGHLIGHTS = "generate-highlights"


class JobQueue(Protocol):
    """Fire-and-forget job submission."""

    def enqueue(self, job_type: str, payload: Dict[str, Any]) -> None:
        ...


@dataclass
class InMemoryJobQueue:
    """Job queue that keeps submitted jobs in a list, in submission order."""
    jobs: List[Tuple[str, Dict[str, Any]]] = field(default_factory=list)

    def enqueue(self, job_type: str, payload: Dict[str, Any]) -> None:
        self.jobs.append((job_type, payload))

    def pop(self) -> Tuple[str, Dict[str, Any]]:
        """Remove and return the oldest job.

        Raises:
            IndexError: If the queue is empty
        """
        return self.jobs.pop(0)


def _segments_from_transcription(transcription: Dict[str, Any]) -> List[Dict[str, Any]]:
    return [
        {
            "id": str(index),
            "text": segment["text"],
            "start": segment["start"],
            "end": segment["end"],
        }
        for index, segment in enumerate(transcription.get("segments", []))
    ]


class VideoAnalysisWorker:
    """Handles transcription, highlight and embedding jobs for a video.

    A completed transcription queues embedding and highlight jobs. Errors
    propagate so the queue's own retry policy applies.
    """

    def __init__(self, services: CachedAIServices, queue: JobQueue):
        self.services = services
        self.queue = queue

    def handle_transcription(self, payload: Dict[str, Any]) -> Dict[str, Any]:
        """Transcribe a video's audio and queue the analysis jobs.

        Args:
            payload: ``video_id``, ``user_id``, ``audio_path`` and an
                optional ``language``

        Returns:
            Summary of the transcription
        """
        video_id = payload["video_id"]
        user_id = payload.get("user_id")
        logger.info("Transcribing audio for video %s", video_id)

        transcription = self.services.transcribe_audio(
            payload["audio_path"],
            language=payload.get("language"),
            video_id=video_id,
            user_id=user_id
        )
        segments = _segments_from_transcription(transcription)

        self.queue.enqueue(JOB_GENERATE_EMBEDDINGS, {
            "video_id": video_id,
            "user_id": user_id,
            "segments": segments,
        })
        self.queue.enqueue(JOB_GENERATE_HIGHLIGHTS, {
            "video_id": video_id,
            "user_id": user_id,
            "transcript": transcription["text"],
            "segments": segments,
        })

        logger.info("Transcription completed for video %s", video_id)
        return {
            "video_id": video_id,
            "language": transcription.get("language"),
            "duration": transcription.get("duration"),
            "segment_count": len(segments),
        }

    def handle_highlights(self, payload: Dict[str, Any]) -> Dict[str, Any]:
        """Generate highlights, a summary and key topics for a transcript."""
        video_id = payload["video_id"]
        user_id = payload.get("user_id")
        transcript = payload["transcript"]
        logger.info("Generating highlights for video %s", video_id)

        highlights = self.services.generate_highlights(
            transcript, payload.get("segments", []), video_id=video_id, user_id=user_id
        )
        summary = self.services.generate_summary(transcript, video_id=video_id, user_id=user_id)
        topics = self.services.extract_key_topics(transcript, video_id=video_id, user_id=user_id)

        return {
            "video_id": video_id,
            "highlights": highlights["highlights"],
            "summary": summary,
            "topics": topics,
        }

    def handle_embeddings(self, payload: Dict[str, Any]) -> Dict[str, Any]:
        """Embed every transcript segment of a video."""
        video_id = payload["video_id"]
        segments = payload.get("segments", [])
        logger.info("Generating embeddings for %d segments of video %s", len(segments), video_id)

        vectors = self.services.generate_embeddings(
            [segment["text"] for segment in segments],
            video_id=video_id,
            user_id=payload.get("user_id")
        )
        return {
            "video_id": video_id,
            "embeddings": [
                {"segment_id": segment["id"], "embedding": vector}
                for segment, vector in zip(segments, vectors)
            ],
        }

    def dispatch(self, job_type: str, payload: Dict[str, Any]) -> Dict[str, Any]:
        """Route a job to its handler.

        Raises:
            ValueError: If the job type is unknown
        """
        handlers = {
            JOB_TRANSCRIBE: self.handle_transcription,
            JOB_GENERATE_HIGHLIGHTS: self.handle_highlights,
            JOB_GENERATE_EMBEDDINGS: self.handle_embeddings,
        }
        if job_type not in handlers:
            raise ValueError(f"Unknown job type: {job_type}")
        return handlers[job_type](payload)
