"""Tests for the housekeeping scheduler and its cleanup job."""

from registry_payments.services import scheduler as scheduler_module
from registry_payments.services.scheduler import IDEMPOTENCY_CLEANUP_JOB_ID, HousekeepingScheduler


class TestHousekeepingScheduler:
    def test_singleton(self):
        assert HousekeepingScheduler() is HousekeepingScheduler()

    async def test_start_registers_cleanup_job(self):
        housekeeping = HousekeepingScheduler()
        housekeeping.start()
        try:
            assert housekeeping.running
            job = housekeeping.get_job(IDEMPOTENCY_CLEANUP_JOB_ID)
            assert job is not None
            assert job.func is scheduler_module.purge_expired_idempotency_keys
        finally:
            housekeeping.shutdown(wait=False)


class TestPurgeJob:
    async def test_uses_application_session_factory(self, session_factory, monkeypatch):
        monkeypatch.setattr(scheduler_module, "AsyncSessionLocal", session_factory)

        assert await scheduler_module.purge_expired_idempotency_keys() == 0
