"""Tests for the daily statistics trigger."""

import asyncio

import pytest

from skill_challenges.services.stats_scheduler import (
    DAILY_STATS_JOB,
    SCHEDULER_JOB_ID,
    StatsScheduler,
)


class TestStatsScheduler:
    """Test start/stop of the cron job and queue hand-off."""

    @pytest.mark.asyncio
    async def test_start_registers_cron_job(self, fake_queue):
        """Test that starting registers one daily job."""
        stats_scheduler = StatsScheduler(fake_queue, hour=2, minute=30)
        try:
            stats_scheduler.start()
            stats_scheduler.start()

            assert stats_scheduler.running
            jobs = stats_scheduler.scheduler.get_jobs()
            assert [job.id for job in jobs] == [SCHEDULER_JOB_ID]
            fields = {f.name: str(f) for f in jobs[0].trigger.fields}
            assert fields["hour"] == "2"
            assert fields["minute"] == "30"
        finally:
            stats_scheduler.stop()

        assert not stats_scheduler.running

    @pytest.mark.asyncio
    async def test_restart_after_stop(self, fake_queue):
        """Test that a stopped scheduler can be started again right away."""
        stats_scheduler = StatsScheduler(fake_queue)
        try:
            stats_scheduler.start()
            first = stats_scheduler.scheduler
            stats_scheduler.stop()
            assert not stats_scheduler.running

            stats_scheduler.start()
            await asyncio.sleep(0.05)

            assert stats_scheduler.running
            assert stats_scheduler.scheduler is not first
            assert stats_scheduler.scheduler.running
            assert [job.id for job in stats_scheduler.scheduler.get_jobs()] == [SCHEDULER_JOB_ID]
        finally:
            stats_scheduler.stop()

    def test_stop_when_not_started(self, fake_queue):
        """Test that stopping an idle scheduler is a no-op."""
        stats_scheduler = StatsScheduler(fake_queue)
        stats_scheduler.stop()
        assert not stats_scheduler.running

    @pytest.mark.asyncio
    async def test_enqueue_daily_stats(self, fake_queue):
        """Test that a tick enqueues the aggregation job with retries."""
        job = await StatsScheduler(fake_queue).enqueue_daily_stats()

        assert fake_queue.enqueued == [job]
        assert job.func_name == DAILY_STATS_JOB
        assert job.retry.max == 3
        assert job.retry.intervals == [60, 300, 900]
