"""Tests for the frame fan-out channel."""

import asyncio

from legalmemo.capture.channel import FrameChannel


async def drain(subscription) -> list[bytes]:
    return [frame async for frame in subscription.frames()]


class TestFrameChannel:
    """Tests for FrameChannel."""

    async def test_every_subscriber_gets_every_frame(self):
        channel = FrameChannel()
        sender = channel.subscribe("sender")
        archiver = channel.subscribe("archiver")

        for i in range(3):
            channel.publish(bytes([i]))
        channel.close()

        assert await drain(sender) == [b"\x00", b"\x01", b"\x02"]
        assert await drain(archiver) == [b"\x00", b"\x01", b"\x02"]
        assert channel.published == 3

    async def test_bounded_subscriber_drops_without_affecting_others(self):
        """A full queue drops frames for that consumer only."""
        channel = FrameChannel()
        slow = channel.subscribe("sender", maxsize=2)
        archive = channel.subscribe("archiver")

        for i in range(5):
            channel.publish(bytes([i]))
        channel.close()

        slow_frames = await drain(slow)
        assert len(await drain(archive)) == 5
        assert slow.dropped > 0
        assert len(slow_frames) < 5

    async def test_publish_after_close_is_ignored(self):
        channel = FrameChannel()
        sub = channel.subscribe("archiver")
        channel.close()
        channel.publish(b"\x01")

        assert await drain(sub) == []
        assert channel.closed is True

    async def test_consumer_waits_for_frames(self):
        channel = FrameChannel()
        sub = channel.subscribe("archiver")
        consumer = asyncio.create_task(drain(sub))

        await asyncio.sleep(0)
        channel.publish(b"\x07")
        channel.close()

        assert await consumer == [b"\x07"]
