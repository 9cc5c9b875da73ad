"""Tests for ProcessingJobRepository."""

from datetime import timedelta

from legalmemo.models.job import JobStatus, JobStep


class TestProcessingJobRepository:
    """Tests for the job lifecycle."""

    async def test_enqueue_creates_job(self, repos, meeting_id):
        """A new job starts queued with no step and no attempts."""
        job = await repos.jobs.enqueue(meeting_id)

        assert job.meeting_id == meeting_id
        assert job.status == JobStatus.QUEUED
        assert job.step is None
        assert job.attempts == 0

    async def test_lifecycle(self, repos, meeting_id):
        """start counts attempts, set_step records progress, complete finishes."""
        await repos.jobs.enqueue(meeting_id)

        started = await repos.jobs.start(meeting_id)
        await repos.jobs.set_step(meeting_id, JobStep.ATTRIBUTE)
        mid_run = await repos.jobs.get(meeting_id)
        await repos.jobs.complete(meeting_id)
        done = await repos.jobs.get(meeting_id)

        assert started.status == JobStatus.PROCESSING
        assert started.attempts == 1
        assert mid_run.step == JobStep.ATTRIBUTE
        assert done.status == JobStatus.COMPLETED
        assert done.step == JobStep.FINALIZE

    async def test_fail_then_requeue(self, repos, meeting_id):
        """A failed job keeps its error until requeued; attempts accumulate."""
        await repos.jobs.enqueue(meeting_id)
        await repos.jobs.start(meeting_id)
        await repos.jobs.set_step(meeting_id, JobStep.SUMMARIZE)
        await repos.jobs.fail(meeting_id, "summarize: RuntimeError: boom")

        failed = await repos.jobs.get(meeting_id)
        assert failed.status == JobStatus.FAILED
        assert failed.last_error == "summarize: RuntimeError: boom"

        requeued = await repos.jobs.enqueue(meeting_id)
        assert requeued.id == failed.id
        assert requeued.status == JobStatus.QUEUED
        assert requeued.step is None
        assert requeued.last_error is None

        restarted = await repos.jobs.start(meeting_id)
        assert restarted.attempts == 2

    async def test_record_speakers(self, repos, meeting_id):
        """A detected count different from the expected one is flagged."""
        await repos.jobs.enqueue(meeting_id)

        await repos.jobs.record_speakers(meeting_id, detected=3, expected=2)
        job = await repos.jobs.get(meeting_id)

        assert job.detected_speakers == 3
        assert job.speaker_mismatch is True

    async def test_list_stalled(self, repos, make_meeting):
        """Queued and processing jobs are stalled; finished jobs are not."""
        queued = await make_meeting()
        processing = await make_meeting()
        completed = await make_meeting()
        failed = await make_meeting()
        for meeting in (queued, processing, completed, failed):
            await repos.jobs.enqueue(meeting.id)
        await repos.jobs.start(processing.id)
        await repos.jobs.complete(completed.id)
        await repos.jobs.fail(failed.id, "boom")

        stalled = await repos.jobs.list_stalled(timedelta(0))

        assert {job.meeting_id for job in stalled} == {queued.id, processing.id}
        assert await repos.jobs.list_stalled(timedelta(hours=1)) == []
