"""
tests/test_engagement_loop.py

The click -> settle -> verify state machine.

Coverage
--------
- Opens on the first candidate
- Stops at the attempt ceiling and falls back to a page capture
- Escalates through tiers when a tier's candidates fail
- Vendor selectors are only used for the fingerprinted vendor
- Click errors, empty captures and oracle failures become error attempts
"""
import pytest

from core.errors import OracleError
from core.models import AttemptOutcome, LocatorTier
from detectors.patterns import GENERIC_CHAT_SELECTORS
from detectors.widget_locator import FIXED_SCAN_JS, FRAME_SCAN_JS, SELECTOR_SCAN_JS, WidgetLocator
from engines.engagement_loop import EngagementLoop

from conftest import FAKE_JPEG, FakeJudge, FakePage, FakeSessionOrchestrator, scan_item


@pytest.fixture()
def make_loop(scan_logger, registry):
    def make(judge: FakeJudge, max_attempts: int = 6) -> EngagementLoop:
        sessions = FakeSessionOrchestrator(scan_logger, lambda url: FakePage())
        locator = WidgetLocator(scan_logger, registry)
        return EngagementLoop(sessions, locator, judge, scan_logger, max_attempts=max_attempts, click_settle=0)
    return make


def _row(count, y=760):
    return [scan_item(1240 - i * 40, y, label=f"item{i}") for i in range(count)]


class TestSuccess:
    @pytest.mark.asyncio
    async def test_opens_on_first_candidate(self, make_loop, session_factory) -> None:
        page = FakePage(scans={FRAME_SCAN_JS: [scan_item(1200, 720)]})
        loop = make_loop(FakeJudge(verdicts=[True]))

        result = await loop.run(session_factory(page))

        assert result.success is True
        assert result.fallback_used is False
        assert result.final_screenshot == FAKE_JPEG
        assert page.mouse.clicks == [(1200, 720)]
        assert [r.outcome for r in result.attempts] == [AttemptOutcome.OPENED]
        assert result.failure_explanation() == ""

    @pytest.mark.asyncio
    async def test_verdicts_cached_on_the_session(self, make_loop, session_factory) -> None:
        page = FakePage(scans={FRAME_SCAN_JS: [scan_item(1200, 720)]})
        judge = FakeJudge(verdicts=[True])
        session = session_factory(page)

        await make_loop(judge).run(session)

        assert judge.caches == [session.verdicts]
        assert judge.caches[0] is session.verdicts

    @pytest.mark.asyncio
    async def test_escalates_to_later_tier(self, make_loop, session_factory) -> None:
        page = FakePage(scans={
            FRAME_SCAN_JS: [scan_item(1200, 720)],
            FIXED_SCAN_JS: [scan_item(1240, 770)],
        })
        loop = make_loop(FakeJudge(verdicts=[False, True]))

        result = await loop.run(session_factory(page))

        assert result.success is True
        assert [r.candidate.source_strategy for r in result.attempts] == [
            LocatorTier.EMBEDDED_FRAME, LocatorTier.FIXED_POSITION
        ]
        assert [r.outcome for r in result.attempts] == [AttemptOutcome.NOT_OPENED, AttemptOutcome.OPENED]

    @pytest.mark.asyncio
    async def test_vendor_selectors_for_fingerprinted_vendor(self, make_loop, session_factory) -> None:
        def selector_scan(selectors):
            return [] if selectors == GENERIC_CHAT_SELECTORS else [scan_item(1230, 750, label=selectors[0])]

        page = FakePage(scans={SELECTOR_SCAN_JS: selector_scan})
        loop = make_loop(FakeJudge(verdicts=[True]))

        result = await loop.run(session_factory(page), vendor_name="Intercom")

        assert result.success is True
        assert result.attempts[0].candidate.source_strategy == LocatorTier.VENDOR_PATTERN
        assert result.attempts[0].candidate.label == ".intercom-lightweight-app-launcher"


class TestExhaustion:
    @pytest.mark.asyncio
    async def test_attempt_ceiling(self, make_loop, session_factory) -> None:
        page = FakePage(scans={FIXED_SCAN_JS: _row(10)})
        judge = FakeJudge(verdicts=[False] * 10)
        loop = make_loop(judge, max_attempts=6)

        result = await loop.run(session_factory(page))

        assert result.success is False
        assert result.fallback_used is True
        assert len(result.attempts) == 6
        assert len(page.mouse.clicks) == 6
        assert len(judge.verify_images) == 6
        assert result.final_screenshot == FAKE_JPEG
        assert "6 attempt(s)" in result.failure_explanation()

    @pytest.mark.asyncio
    async def test_attempt_numbers_are_sequential(self, make_loop, session_factory) -> None:
        page = FakePage(scans={FIXED_SCAN_JS: _row(3)})
        result = await make_loop(FakeJudge()).run(session_factory(page))

        assert isinstance(result.attempts, tuple)
        assert [r.attempt_number for r in result.attempts] == [1, 2, 3]

    @pytest.mark.asyncio
    async def test_no_candidates_anywhere(self, make_loop, session_factory) -> None:
        page = FakePage()
        result = await make_loop(FakeJudge()).run(session_factory(page))

        assert result.success is False
        assert result.fallback_used is True
        assert result.attempts == ()
        assert page.mouse.clicks == []
        assert result.final_screenshot == FAKE_JPEG
        assert "No chat launcher candidates" in result.failure_explanation()


class TestAttemptErrors:
    @pytest.mark.asyncio
    async def test_click_errors_recorded(self, make_loop, session_factory) -> None:
        page = FakePage(scans={FIXED_SCAN_JS: _row(2)}, click_error=RuntimeError("element detached"))
        judge = FakeJudge(verdicts=[True])

        result = await make_loop(judge).run(session_factory(page))

        assert result.success is False
        assert [r.outcome for r in result.attempts] == [AttemptOutcome.ERROR, AttemptOutcome.ERROR]
        assert "element detached" in result.attempts[0].detail
        assert judge.verify_images == []

    @pytest.mark.asyncio
    async def test_oracle_failure_treated_as_not_opened(self, make_loop, session_factory) -> None:
        page = FakePage(scans={FIXED_SCAN_JS: _row(2)})
        judge = FakeJudge(verdicts=[OracleError("upstream 502"), True])

        result = await make_loop(judge).run(session_factory(page))

        assert result.success is True
        assert [r.outcome for r in result.attempts] == [AttemptOutcome.ERROR, AttemptOutcome.OPENED]

    @pytest.mark.asyncio
    async def test_empty_capture_recorded_as_error(self, make_loop, session_factory) -> None:
        page = FakePage(
            scans={FIXED_SCAN_JS: _row(2)},
            screenshots=[RuntimeError("first"), RuntimeError("retry")],
        )
        judge = FakeJudge(verdicts=[True])

        result = await make_loop(judge).run(session_factory(page))

        assert result.success is True
        assert result.attempts[0].outcome == AttemptOutcome.ERROR
        assert result.attempts[0].detail == "empty capture"
        assert len(judge.verify_images) == 1
