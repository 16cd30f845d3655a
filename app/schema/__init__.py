"""Schema package exports."""

from .video_jobs import VideoGenerationJob

__all__ = ["VideoGenerationJob"]
