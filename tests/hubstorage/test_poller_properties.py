"""Property-based tests for issue poll watermark behavior.

This module uses Hypothesis to verify, across arbitrary sequences of
poll batches, that:
- After a non-empty poll, the watermark equals the newest creation time
  in the returned batch
- The watermark never decreases
- An empty poll leaves the watermark unchanged

Testing Configuration:
- Library: Hypothesis (Python)
- Minimum iterations: 100 per property test
"""

import asyncio
from datetime import timedelta
from typing import List
from unittest.mock import AsyncMock, MagicMock

from hypothesis import given, settings, strategies as st

from src.hubstorage.github.models import Issue
from src.hubstorage.issues.cursor import PollCursor
from src.hubstorage.issues.poller import IssuePoller
from tests.hubstorage.factories import T0, make_issue


def run_async(coro):
    return asyncio.run(coro)


# =============================================================================
# Hypothesis Strategies
# =============================================================================


# Offsets in minutes relative to T0; the initial watermark sits at -14 days
minute_offsets = st.integers(min_value=-14 * 24 * 60, max_value=60 * 24 * 60)


@st.composite
def poll_batches(draw: st.DrawFn) -> List[List[Issue]]:
    """Generate a sequence of poll results, some of them empty."""
    batches = draw(
        st.lists(
            st.lists(minute_offsets, min_size=0, max_size=8),
            min_size=1,
            max_size=8,
        )
    )
    number = 0
    result = []
    for offsets in batches:
        batch = []
        for offset in offsets:
            number += 1
            batch.append(make_issue(number, T0 + timedelta(minutes=offset)))
        result.append(batch)
    return result


# =============================================================================
# Properties
# =============================================================================


class TestWatermarkProperties:

    @settings(max_examples=100)
    @given(batches=poll_batches())
    def test_watermark_tracks_newest_returned_issue(self, batches):
        """After each non-empty poll, since == max created_at of that poll."""
        client = MagicMock()
        client.list_issues = AsyncMock(side_effect=batches)
        poller = IssuePoller(client, now=T0)

        async def test():
            for _ in batches:
                before = poller.since
                returned = await poller.poll()
                if returned:
                    assert poller.since == max(issue.created_at for issue in returned)
                    assert all(issue.created_at >= before for issue in returned)
                else:
                    assert poller.since == before
                assert poller.since >= before

        run_async(test())

    @settings(max_examples=100)
    @given(offsets=st.lists(minute_offsets, min_size=0, max_size=20))
    def test_advance_is_monotonic(self, offsets):
        cursor = PollCursor.initial("issues", now=T0)
        created = [T0 + timedelta(minutes=offset) for offset in offsets]

        advanced = cursor.advance(created)

        assert advanced.since >= cursor.since
        if created and max(created) > cursor.since:
            assert advanced.since == max(created)
        else:
            assert advanced.since == cursor.since
