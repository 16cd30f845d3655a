"""Run video sweeps from cron or a shell.

Runs one sweep and prints its summary as JSON. With --loop it keeps sweeping
with a pause in between (15-30 seconds is a good cadence). --status prints the
stored state of one escalation without doing any work.
"""

from __future__ import annotations

import argparse
import asyncio
import json
import logging
import sys
from pathlib import Path

REPO_ROOT = Path(__file__).resolve().parents[1]
if str(REPO_ROOT) not in sys.path:
  sys.path.insert(0, str(REPO_ROOT))

from app.config import get_settings  # noqa: E402
from app.core.database import get_db_engine  # noqa: E402
from app.core.logging import _initialize_logging  # noqa: E402
from app.services.video_jobs import run_video_sweep  # noqa: E402
from app.storage.factory import _get_video_jobs_repo  # noqa: E402
from app.video.errors import InfrastructureFailure  # noqa: E402
from app.video.providers import build_video_provider  # noqa: E402
from app.video.status import StatusReporter  # noqa: E402

logger = logging.getLogger("scripts.run_video_sweep")


async def _print_status(escalation_id: str) -> int:
  repo = _get_video_jobs_repo(get_settings())
  view = await StatusReporter(repo).get_status(escalation_id)
  if view is None:
    print(json.dumps({"escalationId": escalation_id, "status": None}))
    return 1
  print(json.dumps({"escalationId": escalation_id, "status": view.status.value, "resultUrl": view.result_url, "error": view.error}))
  return 0


async def _sweep(loop: bool, interval: float) -> int:
  settings = get_settings()
  repo = _get_video_jobs_repo(settings)
  provider = build_video_provider(settings)
  exit_code = 0
  while True:
    try:
      summary = await run_video_sweep(settings, repo, provider)
      print(json.dumps(summary.to_dict()))
      exit_code = 0
    except InfrastructureFailure as exc:
      logger.error("Sweep aborted: %s", exc)
      print(json.dumps(exc.summary.to_dict()))
      exit_code = 2
    if not loop:
      return exit_code
    await asyncio.sleep(interval)


async def _run(args: argparse.Namespace) -> int:
  try:
    if args.status:
      return await _print_status(args.status)
    return await _sweep(args.loop, args.interval)
  finally:
    engine = get_db_engine()
    if engine is not None:
      await engine.dispose()


def main() -> None:
  parser = argparse.ArgumentParser(description="Advance escalation video generation jobs.")
  parser.add_argument("--loop", action="store_true", help="Keep sweeping until interrupted.")
  parser.add_argument("--interval", type=float, default=20.0, help="Seconds to wait between sweeps with --loop.")
  parser.add_argument("--status", metavar="ESCALATION_ID", help="Print the stored state of one escalation and exit.")
  args = parser.parse_args()
  if args.interval <= 0:
    parser.error("--interval must be positive")

  _initialize_logging(get_settings())
  try:
    sys.exit(asyncio.run(_run(args)))
  except KeyboardInterrupt:
    logger.info("Interrupted; exiting")


if __name__ == "__main__":
  main()
