"""Turn the escalation snapshot on a record into a single-scene render request."""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum

from app.config import Settings
from app.video.errors import MISSING_CONTENT_MESSAGE, FatalSubmissionError
from app.video.models import GenerationRecord, VideoRequest

# Keeps the prompt well inside the provider's input limit.
_MAX_RESPONSE_CHARS = 1200

# Imagery cues keyed by words that commonly appear in professor responses.
_IMAGERY_CUES: tuple[tuple[tuple[str, ...], str], ...] = (
  (("extension", "extend", "deadline", "due date", "late"), "a wall calendar with a date gently circled"),
  (("approved", "approve", "accepted", "confirmed", "granted"), "a soft green checkmark appearing on a notebook"),
  (("question", "clarify", "unclear", "confused"), "a friendly question mark resolving into a lightbulb"),
  (("sorry", "understand", "difficult", "support", "wellbeing"), "warm supportive icons like an open hand and a heart"),
)
_DEFAULT_IMAGERY = "a bright, calm university study space"


class VideoTone(str, Enum):
  PROFESSIONAL = "professional"
  CASUAL = "casual"
  EMPATHETIC = "empathetic"


@dataclass(frozen=True)
class VideoStyle:
  aspect_ratio: str = "16:9"
  tone: VideoTone = VideoTone.EMPATHETIC
  duration_seconds: int = 8

  @classmethod
  def from_settings(cls, settings: Settings) -> VideoStyle:
    return cls(aspect_ratio=settings.video_aspect_ratio, duration_seconds=settings.video_max_duration)


def _pick_imagery(text: str) -> str:
  lowered = text.lower()
  cues = [cue for keywords, cue in _IMAGERY_CUES if any(keyword in lowered for keyword in keywords)]
  if not cues:
    return _DEFAULT_IMAGERY
  return ", then ".join(cues[:2])


def _clip(text: str, limit: int) -> str:
  if len(text) <= limit:
    return text
  return text[: limit - 3].rstrip() + "..."


def build_video_prompt(response_text: str, *, student_name: str | None, category: str | None, course_name: str | None, tone: VideoTone) -> str:
  """Compose the text prompt for one short explainer clip."""
  student = (student_name or "").strip() or "the student"
  context = f"{(category or '').strip() or 'General'} question in {(course_name or '').strip() or 'their course'}"
  message = _clip(" ".join(response_text.split()), _MAX_RESPONSE_CHARS)
  return (
    f"A short, {tone.value} and clear animated explainer addressed to {student} about a {context}. "
    f"Visualize the key points of the professor's reply using {_pick_imagery(message)}. "
    "Clean academic setting, soft natural lighting, calm pacing, friendly modern illustration style. "
    f'A warm narrator voice summarizes the reply: "{message}"'
  )


def build_video_request(record: GenerationRecord, style: VideoStyle) -> VideoRequest:
  """Build the provider request for a record.

  Raises FatalSubmissionError when the record has no response text, since no
  later sweep can fix that without a new generation request.
  """
  response_text = record.response_text
  if response_text is None:
    raise FatalSubmissionError(MISSING_CONTENT_MESSAGE, f"Record {record.escalation_id} has no response_text")

  prompt = build_video_prompt(
    response_text,
    student_name=record.request.get("student_name"),
    category=record.request.get("category"),
    course_name=record.request.get("course_name"),
    tone=style.tone,
  )
  return VideoRequest(escalation_id=record.escalation_id, prompt=prompt, aspect_ratio=style.aspect_ratio, duration_seconds=style.duration_seconds)
