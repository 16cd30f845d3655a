from __future__ import annotations

from typing import Annotated

from fastapi import APIRouter, Depends

from app.api.deps import get_video_jobs_repo, get_video_provider
from app.api.models import GenerateVideoRequest, GenerateVideoResponse, SweepResponse, VideoStatusResponse
from app.config import Settings, get_settings
from app.core.security import Caller, get_current_caller, require_professor, require_task_secret
from app.services.video_jobs import get_video_status, request_video_generation, run_video_sweep
from app.storage.video_jobs_repo import VideoJobsRepository
from app.video.providers import VideoProvider

router = APIRouter()


@router.api_route("/video/poll", methods=["POST", "GET"], response_model=SweepResponse, dependencies=[Depends(require_task_secret)])
async def poll_video_jobs(
  settings: Annotated[Settings, Depends(get_settings)], repo: Annotated[VideoJobsRepository, Depends(get_video_jobs_repo)], provider: Annotated[VideoProvider, Depends(get_video_provider)]
) -> SweepResponse:
  """Run one sweep. Called by the scheduler every 15-30 seconds; GET is accepted for manual triggers."""
  summary = await run_video_sweep(settings, repo, provider)
  return SweepResponse.model_validate(summary.to_dict())


@router.post("/escalations/{escalation_id}/generate-video", response_model=GenerateVideoResponse)
async def generate_video(
  escalation_id: str, payload: GenerateVideoRequest, caller: Annotated[Caller, Depends(require_professor)], repo: Annotated[VideoJobsRepository, Depends(get_video_jobs_repo)]
) -> GenerateVideoResponse:
  """Queue (or re-queue) video generation for an escalation response."""
  status, message = await request_video_generation(
    repo,
    escalation_id,
    caller,
    response_text=payload.response_text,
    student_id=payload.student_id,
    student_name=payload.student_name,
    category=payload.category,
    course_name=payload.course_name,
  )
  return GenerateVideoResponse(status=status, message=message)


@router.get("/escalations/{escalation_id}/video-status", response_model=VideoStatusResponse, response_model_by_alias=True, response_model_exclude_none=True)
async def video_status(escalation_id: str, caller: Annotated[Caller, Depends(get_current_caller)], repo: Annotated[VideoJobsRepository, Depends(get_video_jobs_repo)]) -> VideoStatusResponse:
  """Return the stored generation state; never triggers work."""
  view = await get_video_status(repo, escalation_id, caller)
  return VideoStatusResponse(status=view.status, result_url=view.result_url, error=view.error)
