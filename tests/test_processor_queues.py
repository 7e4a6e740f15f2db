"""Tests for tempo.processor.queues: the job board and its transfers."""

from __future__ import annotations

import pytest

from tempo.processor.exceptions import QueueStateError
from tempo.processor.queues import JobBoard, JobState
from tests.helpers import blocking, non_blocking


@pytest.fixture
def board() -> JobBoard:
    return JobBoard()


class TestSeedAndPick:
    """Seeding pending and picking into running."""

    def test_pending_is_a_stack(self, board: JobBoard):
        a, b, c = non_blocking("a"), non_blocking("b"), blocking("c")
        board.seed([a, b, c])

        assert board.peek_pending() is c
        assert board.pop_to_running().job is c
        assert board.pop_to_running().job is b
        assert board.pending == (a,)

    def test_duplicate_seed_rejected_without_changes(self, board: JobBoard):
        a = non_blocking("a")
        board.seed([a])

        with pytest.raises(QueueStateError):
            board.seed([non_blocking("b"), a])
        assert board.pending == (a,)

    def test_same_job_twice_in_one_batch_rejected(self, board: JobBoard):
        a = non_blocking("a")
        with pytest.raises(QueueStateError):
            board.seed([a, a])
        assert board.total == 0

    def test_pop_from_empty_raises(self, board: JobBoard):
        with pytest.raises(QueueStateError):
            board.pop_to_running()

    def test_state_tag_follows_job(self, board: JobBoard):
        a = non_blocking("a")
        board.seed([a])
        assert board.state_of(a) is JobState.PENDING

        entry = board.pop_to_running()
        assert board.state_of(a) is JobState.RUNNING

        board.settle(entry.slot, succeeded=False)
        assert board.state_of(a) is JobState.FAILED
        assert board.failed == (a,)


class TestSlots:
    """Slot indices identify running jobs independently of list order."""

    def test_settle_by_slot_out_of_order(self, board: JobBoard):
        jobs = [non_blocking(str(i)) for i in range(3)]
        board.seed(jobs)
        first, second, third = (board.pop_to_running() for _ in range(3))

        assert board.settle(second.slot, succeeded=True) is second.job
        assert [e.slot for e in board.running] == [first.slot, third.slot]
        assert board.completed == (second.job,)

    def test_unknown_slot_is_ignored(self, board: JobBoard):
        assert board.settle(99, succeeded=True) is None
        assert board.completed_count == 0

    def test_slots_keep_increasing_after_clear(self, board: JobBoard):
        board.seed([non_blocking("a")])
        old = board.pop_to_running()
        board.clear()

        board.seed([non_blocking("b")])
        new = board.pop_to_running()

        assert new.slot > old.slot
        # A late settlement for the cleared slot must not touch the new run
        assert board.settle(old.slot, succeeded=True) is None
        assert board.running_count == 1


class TestRequeueAndClear:
    """Retry support and reset."""

    def test_requeue_failed_appends_to_pending(self, board: JobBoard):
        never_started, a, b = non_blocking("x"), non_blocking("a"), non_blocking("b")
        board.seed([never_started, a, b])
        for _ in range(2):
            board.settle(board.pop_to_running().slot, succeeded=False)

        assert board.requeue_failed() == 2
        assert board.failed == ()
        assert board.pending == (never_started, b, a)
        assert all(board.state_of(j) is JobState.PENDING for j in board.pending)

    def test_job_count_is_conserved(self, board: JobBoard):
        jobs = [non_blocking(str(i)) for i in range(5)]
        board.seed(jobs)
        board.settle(board.pop_to_running().slot, succeeded=True)
        board.settle(board.pop_to_running().slot, succeeded=False)
        board.pop_to_running()

        counts = (
            board.pending_count + board.running_count
            + board.completed_count + board.failed_count
        )
        assert counts == board.total == 5

    def test_discard_running(self, board: JobBoard):
        a = non_blocking("a")
        board.seed([a])
        board.pop_to_running()

        assert board.discard_running() == [a]
        assert board.state_of(a) is None
        assert board.total == 0

    def test_clear_empties_everything(self, board: JobBoard):
        board.seed([non_blocking("a"), non_blocking("b"), non_blocking("c")])
        board.settle(board.pop_to_running().slot, succeeded=True)
        board.pop_to_running()

        board.clear()

        assert board.total == 0
        assert board.pending == board.completed == board.failed == ()
        assert board.running == ()
