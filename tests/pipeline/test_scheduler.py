"""Tests for the recovery scheduler."""

from datetime import timedelta
from unittest.mock import AsyncMock, MagicMock, patch

from legalmemo.pipeline.processor import MeetingProcessor
from legalmemo.pipeline.scheduler import (
    RECOVERY_JOB_ID,
    get_scheduler,
    recovery_scheduler_lifespan,
    reset_scheduler,
    scan_for_stalled_meetings,
)


def make_processor(resumed: int = 0) -> MagicMock:
    processor = MagicMock(spec=MeetingProcessor)
    processor.resume_stalled = AsyncMock(return_value=resumed)
    return processor


class TestGetScheduler:
    """Tests for get_scheduler function."""

    def setup_method(self):
        """Reset scheduler before each test."""
        reset_scheduler()

    def teardown_method(self):
        """Reset scheduler after each test."""
        reset_scheduler()

    def test_returns_same_instance(self):
        """get_scheduler returns same instance on multiple calls."""
        assert get_scheduler() is get_scheduler()

    def test_reset_clears_instance(self):
        """reset_scheduler clears the singleton."""
        scheduler1 = get_scheduler()
        reset_scheduler()
        assert get_scheduler() is not scheduler1


class TestRecoverySchedulerLifespan:
    """Tests for recovery_scheduler_lifespan context manager."""

    def setup_method(self):
        reset_scheduler()

    def teardown_method(self):
        reset_scheduler()

    async def test_starts_scheduler(self):
        """The scheduler runs inside the context."""
        async with recovery_scheduler_lifespan(make_processor()):
            assert get_scheduler().running is True

    async def test_adds_recovery_job(self):
        """The scanner job is registered with the processor as its argument."""
        processor = make_processor()
        async with recovery_scheduler_lifespan(processor):
            job = get_scheduler().get_job(RECOVERY_JOB_ID)
            assert job is not None
            assert job.args == (processor,)
            # Default scan interval is 5 minutes
            assert job.trigger.interval.total_seconds() == 300

    async def test_job_max_instances(self):
        """Scanner job has max_instances=1 to prevent overlap."""
        async with recovery_scheduler_lifespan(make_processor()):
            job = get_scheduler().get_job(RECOVERY_JOB_ID)
            assert job.max_instances == 1

    async def test_calls_shutdown_on_exit(self):
        """The scheduler is shut down when the context exits."""
        with patch("legalmemo.pipeline.scheduler.AsyncIOScheduler") as mock_scheduler_class:
            mock_scheduler = MagicMock()
            mock_scheduler.running = True
            mock_scheduler_class.return_value = mock_scheduler
            reset_scheduler()

            async with recovery_scheduler_lifespan(make_processor()):
                pass

            mock_scheduler.shutdown.assert_called_once_with(wait=False)


class TestScanForStalledMeetings:
    """Tests for scan_for_stalled_meetings function."""

    async def test_resumes_with_stale_window(self):
        """The scan asks the processor for jobs older than the configured window."""
        processor = make_processor(resumed=2)

        assert await scan_for_stalled_meetings(processor) == 2
        processor.resume_stalled.assert_called_once_with(timedelta(minutes=15))

    async def test_handles_scan_errors(self):
        """Errors are logged and the scan reports nothing resumed."""
        processor = make_processor()
        processor.resume_stalled.side_effect = Exception("database unavailable")

        assert await scan_for_stalled_meetings(processor) == 0

    async def test_logs_results(self):
        """A scan that resumes meetings logs the count."""
        processor = make_processor(resumed=1)

        with patch("legalmemo.pipeline.scheduler.logger") as mock_logger:
            await scan_for_stalled_meetings(processor)
            mock_logger.info.assert_called_with("Resumed stalled meetings", count=1)
