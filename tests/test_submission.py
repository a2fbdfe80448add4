import asyncio

import pytest

from finquiz.errors import AnswerValidationError
from finquiz.snapshot import RoundState
from finquiz.state_machine import GamePhase


def right_answer(game):
    return game.current_round.payload.question.options[0]


async def new_game(game):
    await game.resolve("u1")
    await game.start_new_game("u1")
    assert game.phase is GamePhase.PLAYING


async def test_double_submit_reaches_backend_once(backend, game):
    await new_game(game)
    game.select_answer(right_answer(game))
    backend.submit_gate = asyncio.Event()

    first = asyncio.ensure_future(game.submit_answer())
    second = asyncio.ensure_future(game.submit_answer())
    await asyncio.sleep(0)

    # both ran up to their first await; only one got past the claim
    assert backend.calls["submit_answer"] == 1
    assert second.done() and second.result() is None
    assert game.current_round.state is RoundState.SUBMITTING

    backend.submit_gate.set()
    result = await first
    assert result is not None and result.is_correct
    assert backend.calls["submit_answer"] == 1
    assert game.phase is GamePhase.ROUND_RESULT


async def test_manual_submit_and_expiry_in_same_tick(backend, scheduler, game):
    await new_game(game)
    game.select_answer(right_answer(game))
    backend.submit_gate = asyncio.Event()

    scheduler.advance(60)
    auto_task = game.coordinator.auto_submit_task
    assert auto_task is not None
    manual_task = asyncio.ensure_future(game.submit_answer())
    await asyncio.sleep(0)

    assert backend.calls["submit_answer"] == 1
    assert manual_task.done() and manual_task.result() is None

    backend.submit_gate.set()
    auto = await auto_task
    assert auto is not None and auto.is_correct
    assert backend.calls["submit_answer"] == 1
    assert backend.submitted[0]["time_taken"] == 60.0


async def test_immediate_timeout_submits_empty_answer(backend, scheduler, game):
    await new_game(game)

    scheduler.advance(60)
    result = await game.coordinator.auto_submit_task

    assert backend.submitted == [
        {"session_id": game.snapshot.session_id, "round_number": 1, "answer": "", "time_taken": 60.0}
    ]
    assert result.is_correct is False
    graded = game.snapshot.rounds[1]
    assert graded.user_answer == ""
    assert graded.is_correct is False
    assert game.phase is GamePhase.ROUND_RESULT


async def test_time_taken_is_budget_minus_remaining(backend, scheduler, game):
    await new_game(game)
    scheduler.advance(17)
    game.select_answer(right_answer(game))
    await game.submit_answer()
    assert backend.submitted[0]["time_taken"] == 17.0


async def test_rounds_completed_advances_by_one_per_submission(backend, game):
    await new_game(game)
    session = game.snapshot.session

    for n in range(1, 4):
        assert game.current_round.round_number == n
        before = session.rounds_completed
        game.select_answer(right_answer(game))
        result = await game.submit_answer()
        assert session.rounds_completed == before + 1 == n
        assert 0 <= session.rounds_completed <= session.max_rounds
        assert session.total_score == result.total_score == n * 10
        if not result.session_complete:
            await game.advance()

    assert backend.calls["start_round"] == 3


async def test_result_is_merged_before_round_result_phase(game):
    await new_game(game)
    seen = []
    game.machine.add_listener(
        lambda old, new: seen.append((new, game.snapshot.session.rounds_completed))
    )
    game.select_answer(right_answer(game))
    await game.submit_answer()
    assert seen == [(GamePhase.ROUND_RESULT, 1)]


async def test_failed_submit_releases_round_for_retry(backend, scheduler, game):
    await new_game(game)
    game.select_answer(right_answer(game))
    scheduler.advance(12)
    backend.fail_next["submit_answer"] = "network unreachable"

    assert await game.submit_answer() is None
    assert game.coordinator.last_error == "network unreachable"
    assert game.phase is GamePhase.PLAYING
    active = game.current_round
    assert active.state is RoundState.OPEN
    assert active.failed_elapsed == 12.0

    # the timer stays stopped: no auto-submit behind the player's back
    scheduler.advance(120)
    assert game.coordinator.auto_submit_task is None
    assert backend.calls["submit_answer"] == 1

    result = await game.submit_answer()
    assert result is not None and result.is_correct
    assert backend.calls["submit_answer"] == 2
    assert backend.submitted[-1]["time_taken"] == 12.0
    assert game.coordinator.last_error is None


async def test_cancelled_round_never_auto_submits(backend, scheduler, game):
    await new_game(game)
    scheduler.advance(30)
    await game.abandon()

    scheduler.advance(60)
    assert game.coordinator.auto_submit_task is None
    assert backend.calls["submit_answer"] == 0
    assert game.phase is GamePhase.DASHBOARD


async def test_expiry_for_superseded_round_is_ignored(backend, scheduler, game):
    await new_game(game)
    game.select_answer(right_answer(game))
    await game.submit_answer()
    await game.advance()
    assert game.current_round.round_number == 2

    game.coordinator._on_timer_expired(1)
    assert game.coordinator.auto_submit_task is None
    assert backend.calls["submit_answer"] == 1


async def test_result_for_abandoned_round_is_discarded(backend, game):
    await new_game(game)
    backend.submit_gate = asyncio.Event()
    game.select_answer(right_answer(game))

    pending = asyncio.ensure_future(game.submit_answer())
    await asyncio.sleep(0)
    await game.abandon()
    backend.submit_gate.set()

    assert await pending is None
    assert game.snapshot.rounds == {}
    assert game.phase is GamePhase.DASHBOARD


async def test_next_round_waits_for_current_submission(backend, game):
    await new_game(game)
    assert await game.coordinator.start_round() is None
    assert backend.calls["start_round"] == 1


async def test_final_round_shows_result_then_completes_on_advance(backend, game):
    await new_game(game)
    for _ in range(3):
        game.select_answer(right_answer(game))
        result = await game.submit_answer()
        assert game.phase is GamePhase.ROUND_RESULT
        if result.session_complete:
            break
        await game.advance()

    assert result.session_complete
    assert game.phase is GamePhase.ROUND_RESULT
    assert await game.advance() is GamePhase.COMPLETED
    assert backend.calls["start_round"] == 3


async def test_submit_outside_playing_is_ignored(backend, game):
    await game.resolve("u1")
    assert await game.submit_answer() is None
    assert backend.calls["submit_answer"] == 0


async def test_selection_must_be_one_of_the_options(game):
    await new_game(game)
    with pytest.raises(AnswerValidationError):
        game.select_answer("Buy a yacht")
    assert game.current_round.pending_answer is None


async def test_start_round_failure_goes_to_error_and_can_retry(backend, game):
    await game.resolve("u1")
    backend.fail_next["start_round"] = "no questions available"
    await game.start_new_game("u1")

    assert game.phase is GamePhase.ERROR
    assert game.error == "no questions available"

    active = await game.retry_round()
    assert active.round_number == 1
    assert game.phase is GamePhase.PLAYING


async def test_concurrent_advances_start_one_round(backend, scheduler, game):
    await new_game(game)
    game.select_answer(right_answer(game))
    await game.submit_answer()
    backend.yield_on_start = True

    await asyncio.gather(game.advance(), game.advance())

    assert backend.calls["start_round"] == 2
    assert game.current_round.round_number == 2
    assert game.phase is GamePhase.PLAYING
    # only round 2's countdown is live
    assert len(scheduler.pending) == 1
    game.coordinator.cancel_round()
    assert scheduler.pending == []


async def test_round_start_guard_clears_after_failure(backend, game):
    await new_game(game)
    game.select_answer(right_answer(game))
    await game.submit_answer()
    backend.fail_next["start_round"] = "no questions available"

    await game.advance()
    assert game.phase is GamePhase.ERROR

    active = await game.retry_round()
    assert active is not None and active.round_number == 2


async def test_timed_submit_failure_is_reported(backend, scheduler, game):
    await new_game(game)
    failures = []
    game.coordinator.on_submit_failed = lambda n, reason: failures.append((n, reason))
    backend.fail_next["submit_answer"] = "gateway timeout"

    scheduler.advance(60)
    assert await game.coordinator.auto_submit_task is None

    assert failures == [(1, "gateway timeout")]
    assert game.current_round.state is RoundState.OPEN
    assert game.phase is GamePhase.PLAYING
