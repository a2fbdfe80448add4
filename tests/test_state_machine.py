import pytest

from finquiz.errors import InvalidTransition
from finquiz.game_types import RoundResult, SessionStatus
from finquiz.snapshot import SessionSnapshot
from finquiz.state_machine import GamePhase, SessionStateMachine


@pytest.fixture()
def machine(backend):
    return SessionStateMachine(backend, SessionSnapshot())


def record_phases(machine):
    seen = []
    machine.add_listener(lambda old, new: seen.append(new))
    return seen


def result(complete=False):
    return RoundResult(is_correct=True, points_earned=10, correct_answer="x", explanation="",
                       total_score=10, rounds_completed=1, session_complete=complete)


async def test_initial_phase_is_loading(machine):
    assert machine.phase is GamePhase.LOADING


async def test_no_session_goes_to_dashboard(machine):
    assert await machine.resolve("u1") is GamePhase.DASHBOARD
    assert machine.session_id is None


async def test_completed_session_on_load_goes_straight_to_completed(backend, machine):
    session = backend.add_session(status=SessionStatus.COMPLETED, rounds_completed=10, total_score=80)
    seen = record_phases(machine)

    assert await machine.resolve("u1") is GamePhase.COMPLETED
    assert machine.session_id == session.id
    assert GamePhase.PLAYING not in seen


async def test_active_session_resumes_playing(backend, machine):
    session = backend.add_session(rounds_completed=4)
    assert await machine.resolve("u1") is GamePhase.PLAYING
    assert machine.session_id == session.id
    assert backend.calls["resume_session"] == 0


async def test_paused_session_is_resumed(backend, machine):
    session = backend.add_session(status=SessionStatus.PAUSED, rounds_completed=2)
    assert await machine.resolve("u1") is GamePhase.PLAYING
    assert backend.calls["resume_session"] == 1
    assert backend.sessions[session.id].status is SessionStatus.ACTIVE


async def test_lookup_failure_goes_to_error_with_reason_verbatim(backend, machine):
    backend.add_session()
    backend.fail_next["get_current_session"] = "relation \"game_sessions\" does not exist"

    assert await machine.resolve("u1") is GamePhase.ERROR
    assert machine.error == "relation \"game_sessions\" does not exist"
    assert machine.session_id is None
    assert backend.calls["get_current_session"] == 1


async def test_resolve_is_idempotent(backend, machine):
    backend.add_session()
    first = await machine.resolve("u1")
    second = await machine.resolve("u1")
    assert first is second is GamePhase.PLAYING
    assert backend.calls["get_current_session"] == 2


async def test_resolve_recovers_from_error(backend, machine):
    backend.fail_next["get_current_session"] = "timeout"
    await machine.resolve("u1")
    assert await machine.resolve("u1") is GamePhase.DASHBOARD
    assert machine.error is None


async def test_start_new_game(backend, machine):
    await machine.resolve("u1")
    session_id = await machine.start_new_game("u1", 10)

    assert machine.phase is GamePhase.PLAYING
    assert session_id == machine.session_id
    assert backend.sessions[session_id].max_rounds == 10


async def test_start_new_game_failure_stays_on_dashboard(backend, machine):
    await machine.resolve("u1")
    backend.fail_next["create_session"] = "duplicate key value"

    assert await machine.start_new_game("u1", 10) is None
    assert machine.phase is GamePhase.DASHBOARD
    assert machine.error == "duplicate key value"
    assert backend.calls["create_session"] == 1


async def test_cannot_start_new_game_while_playing(backend, machine):
    backend.add_session()
    await machine.resolve("u1")
    with pytest.raises(InvalidTransition):
        await machine.start_new_game("u1", 10)


async def test_final_result_then_completed_only_on_advance(backend, machine):
    backend.add_session()
    await machine.resolve("u1")

    machine.show_round_result(result(complete=True))
    assert machine.phase is GamePhase.ROUND_RESULT
    machine.complete()
    assert machine.phase is GamePhase.COMPLETED


async def test_complete_requires_session_complete(backend, machine):
    backend.add_session()
    await machine.resolve("u1")
    machine.show_round_result(result(complete=False))
    with pytest.raises(InvalidTransition):
        machine.complete()


async def test_completed_needs_explicit_action_to_leave(backend, machine):
    backend.add_session(status=SessionStatus.COMPLETED)
    await machine.resolve("u1")
    with pytest.raises(InvalidTransition):
        machine.show_round_result(result())
    machine.back_to_dashboard()
    assert machine.phase is GamePhase.DASHBOARD
