"""Tests for undo eligibility."""

from datetime import datetime, timedelta, timezone

import pytest

pytestmark = pytest.mark.unit

from kioskhub.domains.tasks.models.task_models import (
    TASK_TYPE_MULTIPLE_CHECKIN,
    TASK_TYPE_PROGRESS,
    TASK_TYPE_SIMPLE,
)
from kioskhub.domains.tasks.undo_window import can_undo, remaining_seconds, undo_deadline

NOW = datetime(2026, 3, 2, 9, 0, 0)


def test_can_undo_simple_within_window():
    assert can_undo(NOW - timedelta(minutes=4), TASK_TYPE_SIMPLE, 5, now=NOW) is True


def test_cannot_undo_simple_after_window():
    assert can_undo(NOW - timedelta(minutes=6), TASK_TYPE_SIMPLE, 5, now=NOW) is False


@pytest.mark.parametrize("task_type", [TASK_TYPE_MULTIPLE_CHECKIN, TASK_TYPE_PROGRESS])
def test_cannot_undo_other_types(task_type):
    assert can_undo(NOW - timedelta(minutes=1), task_type, 5, now=NOW) is False


def test_window_boundary_is_inclusive():
    completed_at = NOW - timedelta(minutes=5)
    assert can_undo(completed_at, TASK_TYPE_SIMPLE, 5, now=NOW) is True
    assert can_undo(completed_at, TASK_TYPE_SIMPLE, 5, now=NOW + timedelta(seconds=1)) is False


def test_remaining_seconds_counts_down_to_zero():
    completed_at = NOW
    samples = [remaining_seconds(completed_at, 5, now=NOW + timedelta(seconds=s)) for s in range(0, 400, 7)]
    assert samples[0] == 300
    assert all(later <= earlier for earlier, later in zip(samples, samples[1:]))
    assert min(samples) == 0
    assert remaining_seconds(completed_at, 5, now=NOW + timedelta(minutes=5)) == 0
    assert remaining_seconds(completed_at, 5, now=NOW + timedelta(minutes=50)) == 0


def test_remaining_seconds_future_timestamp_is_full_window():
    assert remaining_seconds(NOW + timedelta(minutes=2), 5, now=NOW) == 300


def test_aware_timestamps_are_normalized():
    completed_at = datetime(2026, 3, 2, 10, 0, 0, tzinfo=timezone(timedelta(hours=1)))
    assert remaining_seconds(completed_at, 5, now=NOW + timedelta(minutes=1)) == 240
    assert undo_deadline(completed_at, 5) == NOW + timedelta(minutes=5)


def test_countdown_stays_positive_while_undo_is_open():
    completed_at = NOW - timedelta(seconds=299, milliseconds=500)
    assert can_undo(completed_at, TASK_TYPE_SIMPLE, 5, now=NOW) is True
    assert remaining_seconds(completed_at, 5, now=NOW) == 1


def test_countdown_reaches_zero_at_window_end():
    completed_at = NOW - timedelta(seconds=300)
    assert remaining_seconds(completed_at, 5, now=NOW) == 0
    assert remaining_seconds(NOW - timedelta(seconds=120), 5, now=NOW) == 180
