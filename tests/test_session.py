"""Tests for the one-request-in-flight drawing session."""

import asyncio

from stroke_routines.engine import RecognitionResult
from stroke_routines.notify import RecordingNotifier
from stroke_routines.session import BUSY, COMPLETED, TIMEOUT, DrawingSession, SessionReply


class GatedEngine:
    """Engine stand-in whose recognition finishes only when ``gate`` is set."""

    def __init__(self):
        self.gate = asyncio.Event()
        self.calls = 0

    async def recognize_and_execute(self, points):
        self.calls += 1
        await self.gate.wait()
        return RecognitionResult(recognized=True, score=0.95, matched_name="Focus")


class InstantEngine:
    async def recognize_and_execute(self, points):
        return RecognitionResult(recognized=False, score=0.4, matched_name="Line")


class TestDrawingSession:
    def test_completed(self):
        notifier = RecordingNotifier()
        session = DrawingSession(InstantEngine(), notifier)

        reply = asyncio.run(session.submit([]))
        assert reply.status == COMPLETED
        assert reply.result.matched_name == "Line"
        assert not session.busy
        assert notifier.messages == []

    def test_second_stroke_rejected_while_busy(self):
        async def scenario():
            engine = GatedEngine()
            notifier = RecordingNotifier()
            session = DrawingSession(engine, notifier)

            first = asyncio.create_task(session.submit([]))
            await asyncio.sleep(0)
            await asyncio.sleep(0)
            assert session.busy

            second = await session.submit([])
            engine.gate.set()
            return await first, second, engine.calls, notifier, session

        first, second, calls, notifier, session = asyncio.run(scenario())
        assert first.status == COMPLETED
        assert second.status == BUSY
        assert second.result is None
        assert calls == 1
        assert notifier.levels("info") == ["Processing previous gesture..."]
        assert not session.busy

    def test_timeout_frees_session(self):
        async def scenario():
            engine = GatedEngine()
            notifier = RecordingNotifier()
            session = DrawingSession(engine, notifier, timeout=0.05)

            reply = await session.submit([])
            busy_after = session.busy
            # Late answers are logged, not delivered
            engine.gate.set()
            await asyncio.sleep(0.01)
            return reply, busy_after, notifier

        reply, busy_after, notifier = asyncio.run(scenario())
        assert reply.status == TIMEOUT
        assert busy_after is False
        assert notifier.levels("warning") == ["Recognition timed out, try again"]

    def test_accepts_new_stroke_after_timeout(self):
        async def scenario():
            engine = GatedEngine()
            session = DrawingSession(engine, RecordingNotifier(), timeout=0.05)
            await session.submit([])
            engine.gate.set()
            return await session.submit([]), engine.calls

        reply, calls = asyncio.run(scenario())
        assert reply.status == COMPLETED
        assert calls == 2


class TestSessionReply:
    def test_to_dict(self):
        reply = SessionReply(COMPLETED, RecognitionResult(recognized=True, score=0.9, matched_name="A"))
        assert reply.to_dict() == {
            "status": "completed",
            "recognized": True,
            "matched_name": "A",
            "score": 0.9,
        }
        assert SessionReply(BUSY).to_dict() == {"status": "busy"}
