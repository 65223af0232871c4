"""
APScheduler Configuration for Housekeeping Jobs

Runs periodic maintenance for the payment subsystem. Currently a single job
purges expired idempotency keys so their unique slots are released.
"""
import logging
from typing import Optional
from apscheduler.schedulers.asyncio import AsyncIOScheduler
from apscheduler.triggers.interval import IntervalTrigger
from apscheduler.executors.asyncio import AsyncIOExecutor

from ..config import settings
from ..db.init_db import AsyncSessionLocal
from . import idempotency_service

logger = logging.getLogger(__name__)

IDEMPOTENCY_CLEANUP_JOB_ID = "idempotency_key_cleanup"


async def purge_expired_idempotency_keys() -> int:
    """Job body: delete expired idempotency keys in a fresh session."""
    async with AsyncSessionLocal() as session:
        return await idempotency_service.cleanup_expired(session)


class HousekeepingScheduler:
    """
    Singleton scheduler for housekeeping jobs.

    Jobs are re-registered on every start, so the in-memory job store is
    enough.
    """

    _instance: Optional["HousekeepingScheduler"] = None
    _scheduler: Optional[AsyncIOScheduler] = None

    def __new__(cls):
        """Singleton pattern to ensure only one scheduler instance."""
        if cls._instance is None:
            cls._instance = super().__new__(cls)
        return cls._instance

    def __init__(self):
        """Initialize scheduler if not already initialized."""
        if self._scheduler is None:
            self._initialize_scheduler()

    def _initialize_scheduler(self):
        """
        Configure APScheduler.

        - AsyncIOScheduler so jobs run on the application event loop
        - Coalesce: True (skip missed runs on restart)
        - Max instances: 1 per job (no overlapping cleanups)
        """
        executors = {
            'default': AsyncIOExecutor()
        }

        job_defaults = {
            'coalesce': True,  # Combine missed runs into one
            'max_instances': 1,
            'misfire_grace_time': 300  # 5 minutes grace period for misfires
        }

        self._scheduler = AsyncIOScheduler(
            executors=executors,
            job_defaults=job_defaults,
            timezone='UTC'
        )

        logger.info("APScheduler initialized")

    @property
    def running(self) -> bool:
        return bool(self._scheduler and self._scheduler.running)

    def start(self):
        """
        Start the scheduler and register housekeeping jobs.

        Should be called during FastAPI app startup.
        """
        if self._scheduler.running:
            logger.warning("Scheduler already running")
            return

        self._scheduler.add_job(
            purge_expired_idempotency_keys,
            trigger=IntervalTrigger(minutes=settings.idempotency_cleanup_interval_minutes),
            id=IDEMPOTENCY_CLEANUP_JOB_ID,
            name="Purge expired idempotency keys",
            replace_existing=True,
        )
        self._scheduler.start()
        logger.info(
            f"Scheduler started, idempotency cleanup every "
            f"{settings.idempotency_cleanup_interval_minutes}min"
        )

    def shutdown(self, wait: bool = True):
        """
        Shutdown the scheduler gracefully.

        Args:
            wait: Wait for running jobs to complete before shutdown
        """
        if self._scheduler and self._scheduler.running:
            self._scheduler.shutdown(wait=wait)
            logger.info(f"Scheduler shutdown (wait={wait})")

    def get_job(self, job_id: str):
        return self._scheduler.get_job(job_id)


# ============================================================================
# Global Scheduler Instance
# ============================================================================

scheduler = HousekeepingScheduler()


def start_scheduler():
    """Start the scheduler during app startup (FastAPI lifespan)."""
    scheduler.start()


def shutdown_scheduler(wait: bool = True):
    """Shutdown the scheduler during app shutdown (FastAPI lifespan)."""
    scheduler.shutdown(wait=wait)
