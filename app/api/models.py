from __future__ import annotations

from pydantic import BaseModel, ConfigDict, Field, StrictStr

from app.video.models import GenerationStatus


class GenerateVideoRequest(BaseModel):
  """Escalation content the clip is generated from."""

  response_text: StrictStr | None = Field(default=None, alias="responseText", max_length=8000, description="Professor response to narrate.")
  student_id: StrictStr | None = Field(default=None, alias="studentId", description="Student allowed to view the video.")
  student_name: StrictStr | None = Field(default=None, alias="studentName", max_length=200)
  category: StrictStr | None = Field(default=None, max_length=100)
  course_name: StrictStr | None = Field(default=None, alias="courseName", max_length=200)
  model_config = ConfigDict(populate_by_name=True, extra="forbid")


class GenerateVideoResponse(BaseModel):
  """Acknowledgement returned once a generation request is queued."""

  success: bool = True
  status: GenerationStatus
  message: StrictStr


class VideoStatusResponse(BaseModel):
  """Current generation state of one escalation."""

  status: GenerationStatus
  result_url: StrictStr | None = Field(default=None, alias="resultUrl")
  error: StrictStr | None = None
  model_config = ConfigDict(populate_by_name=True)


class SweepResponse(BaseModel):
  """Counters from one poll sweep."""

  created: int
  polled: int
  completed: int
  failed: int
  skipped: int
  duration: int = Field(description="Sweep wall time in milliseconds.")
  budget_exhausted: bool = Field(alias="budgetExhausted")
  message: StrictStr
  model_config = ConfigDict(populate_by_name=True)
