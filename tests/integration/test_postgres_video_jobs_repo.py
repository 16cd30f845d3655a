"""Repository tests against a real SQL engine (SQLite via aiosqlite)."""

from __future__ import annotations

from datetime import timedelta

import pytest
from sqlalchemy import text
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine

from app.core.database import Base
from app.schema.video_jobs import VideoGenerationJob  # noqa: F401
from app.storage.postgres_video_jobs_repo import PostgresVideoJobsRepository
from app.video.errors import CorruptRecordError, InvalidTransitionError, RetryableStoreError
from app.video.models import GenerationStatus
from tests.fakes import EPOCH, FakeClock, ScriptedProvider, make_orchestrator, pending_record, processing_record

RESULT_URL = "https://storage.googleapis.com/videos/e1.mp4"


@pytest.fixture
async def sql_engine(tmp_path):
  engine = create_async_engine(f"sqlite+aiosqlite:///{tmp_path / 'video_jobs.db'}")
  async with engine.begin() as conn:
    await conn.run_sync(Base.metadata.create_all)
  yield engine
  await engine.dispose()


@pytest.fixture
def sql_repo(sql_engine) -> PostgresVideoJobsRepository:
  return PostgresVideoJobsRepository(session_factory=async_sessionmaker(bind=sql_engine, expire_on_commit=False, class_=AsyncSession))


@pytest.mark.anyio
async def test_create_and_get_round_trip(sql_repo: PostgresVideoJobsRepository) -> None:
  assert await sql_repo.create(pending_record("E1", created_at=EPOCH)) is True
  assert await sql_repo.create(pending_record("E1", created_at=EPOCH)) is False

  stored = await sql_repo.get("E1")

  assert stored is not None
  assert stored.status == GenerationStatus.PENDING
  assert stored.request["response_text"] == "Your extension is approved."
  assert stored.created_at == EPOCH
  assert stored.created_at.tzinfo is not None
  assert await sql_repo.get("missing") is None


@pytest.mark.anyio
async def test_discovery_splits_and_orders_records(sql_repo: PostgresVideoJobsRepository) -> None:
  await sql_repo.create(pending_record("E-new", created_at=EPOCH + timedelta(minutes=2)))
  await sql_repo.create(pending_record("E-old", status=GenerationStatus.NOT_REQUESTED, created_at=EPOCH))
  await sql_repo.create(processing_record("P-late", "op-2", submitted_at=EPOCH + timedelta(minutes=5), created_at=EPOCH))
  await sql_repo.create(processing_record("P-early", "op-1", submitted_at=EPOCH + timedelta(minutes=1), created_at=EPOCH))
  await sql_repo.create(pending_record("Done", status=GenerationStatus.COMPLETED, provider_job_id="op-0", result_url=RESULT_URL, created_at=EPOCH))

  assert [record.escalation_id for record in await sql_repo.find_not_submitted(10)] == ["E-old", "E-new"]
  assert [record.escalation_id for record in await sql_repo.find_in_flight(10)] == ["P-early", "P-late"]
  assert [record.escalation_id for record in await sql_repo.find_not_submitted(1)] == ["E-old"]


@pytest.mark.anyio
async def test_submission_lease_admits_one_claimant(sql_repo: PostgresVideoJobsRepository) -> None:
  await sql_repo.create(pending_record("E1", created_at=EPOCH))
  now = EPOCH + timedelta(hours=1)
  lease = {"claimed_until": now + timedelta(seconds=120)}

  first = await sql_repo.try_transition("E1", GenerationStatus.PENDING, {"claim_token": "token-a", **lease}, lease_free_at=now)
  second = await sql_repo.try_transition("E1", GenerationStatus.PENDING, {"claim_token": "token-b", **lease}, lease_free_at=now)

  assert (first, second) == (True, False)
  assert (await sql_repo.get("E1")).claim_token == "token-a"

  changes = {"status": GenerationStatus.PROCESSING, "provider_job_id": "op-1", "submitted_at": now, "claim_token": None, "claimed_until": None}
  assert await sql_repo.try_transition("E1", GenerationStatus.PENDING, changes, claim_token="token-b") is False
  assert await sql_repo.try_transition("E1", GenerationStatus.PENDING, changes, claim_token="token-a") is True

  stored = await sql_repo.get("E1")
  assert stored.status == GenerationStatus.PROCESSING
  assert stored.provider_job_id == "op-1"
  assert stored.claim_token is None


@pytest.mark.anyio
async def test_expired_lease_can_be_taken_over(sql_repo: PostgresVideoJobsRepository) -> None:
  await sql_repo.create(pending_record("E1", created_at=EPOCH))
  await sql_repo.try_transition("E1", GenerationStatus.PENDING, {"claim_token": "crashed", "claimed_until": EPOCH + timedelta(seconds=120)}, lease_free_at=EPOCH)

  took_over = await sql_repo.try_transition("E1", GenerationStatus.PENDING, {"claim_token": "rescuer", "claimed_until": EPOCH + timedelta(seconds=300)}, lease_free_at=EPOCH + timedelta(seconds=121))

  assert took_over is True


@pytest.mark.anyio
async def test_conditional_write_respects_expected_status(sql_repo: PostgresVideoJobsRepository) -> None:
  await sql_repo.create(processing_record("E1", "op-1", created_at=EPOCH))
  completed = {"status": GenerationStatus.COMPLETED, "result_url": RESULT_URL, "completed_at": EPOCH}

  assert await sql_repo.try_transition("E1", GenerationStatus.PROCESSING, completed) is True
  assert await sql_repo.try_transition("E1", GenerationStatus.PROCESSING, completed) is False
  assert (await sql_repo.get("E1")).result_url == RESULT_URL


@pytest.mark.anyio
async def test_invalid_transition_is_refused_before_touching_the_store(sql_repo: PostgresVideoJobsRepository) -> None:
  await sql_repo.create(processing_record("E1", "op-1", created_at=EPOCH))

  with pytest.raises(InvalidTransitionError):
    await sql_repo.try_transition("E1", GenerationStatus.PROCESSING, {"status": GenerationStatus.PENDING})

  assert (await sql_repo.get("E1")).status == GenerationStatus.PROCESSING


@pytest.mark.anyio
async def test_unreachable_store_raises_retryable_error(tmp_path) -> None:
  engine = create_async_engine(f"sqlite+aiosqlite:///{tmp_path / 'missing' / 'video_jobs.db'}")
  repo = PostgresVideoJobsRepository(session_factory=async_sessionmaker(bind=engine, class_=AsyncSession))

  with pytest.raises(RetryableStoreError):
    await repo.find_not_submitted(10)

  await engine.dispose()


# SQLite stores DateTime columns as naive ISO strings.
_SQLITE_EPOCH = "2026-01-05 09:00:00.000000"
_INSERT_ROW = text("INSERT INTO video_generation_jobs (escalation_id, status, request_json, provider_job_id, created_at, updated_at) VALUES (:escalation_id, :status, '{}', :provider_job_id, :created_at, :created_at)")


@pytest.mark.anyio
async def test_schema_rejects_processing_row_without_provider_job(sql_engine) -> None:
  with pytest.raises(IntegrityError):
    async with sql_engine.begin() as conn:
      await conn.execute(_INSERT_ROW, {"escalation_id": "BAD", "status": "processing", "provider_job_id": None, "created_at": _SQLITE_EPOCH})

  with pytest.raises(IntegrityError):
    async with sql_engine.begin() as conn:
      await conn.execute(_INSERT_ROW, {"escalation_id": "BAD", "status": "pending", "provider_job_id": "op-1", "created_at": _SQLITE_EPOCH})


async def _insert_malformed_row(sql_engine, escalation_id: str, status: str) -> None:
  # Rows written before the constraints existed can still break the record invariants.
  async with sql_engine.begin() as conn:
    await conn.execute(text("PRAGMA ignore_check_constraints = ON"))
    await conn.execute(_INSERT_ROW, {"escalation_id": escalation_id, "status": status, "provider_job_id": None, "created_at": _SQLITE_EPOCH})
    await conn.execute(text("PRAGMA ignore_check_constraints = OFF"))


@pytest.mark.anyio
async def test_malformed_row_is_skipped_and_sweep_still_submits_good_records(sql_engine, sql_repo: PostgresVideoJobsRepository) -> None:
  await sql_repo.create(pending_record("GOOD", created_at=EPOCH))
  await _insert_malformed_row(sql_engine, "BAD", "processing")

  assert await sql_repo.find_in_flight(10) == []
  assert [record.escalation_id for record in await sql_repo.find_not_submitted(10)] == ["GOOD"]

  clock = FakeClock(EPOCH + timedelta(minutes=1))
  provider = ScriptedProvider()
  summary = await make_orchestrator(sql_repo, provider, clock).run_sweep()

  assert summary.created == 1
  stored = await sql_repo.get("GOOD")
  assert stored.status == GenerationStatus.PROCESSING
  assert stored.provider_job_id == provider.job_id_for("GOOD")


@pytest.mark.anyio
async def test_reading_a_malformed_row_raises_store_error(sql_engine, sql_repo: PostgresVideoJobsRepository) -> None:
  await _insert_malformed_row(sql_engine, "BAD", "processing")

  with pytest.raises(CorruptRecordError):
    await sql_repo.get("BAD")
