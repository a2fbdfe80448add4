from finquiz.round_timer import RoundTimer


def make_timer(scheduler, budget=3, **kwargs):
    ticks, expired = [], []
    timer = RoundTimer(
        1,
        budget=budget,
        on_tick=ticks.append,
        on_expire=expired.append,
        scheduler=scheduler,
        **kwargs,
    )
    return timer, ticks, expired


def test_ticks_down_once_per_second_to_zero(scheduler):
    timer, ticks, expired = make_timer(scheduler)
    timer.start()
    assert timer.running

    scheduler.advance(1)
    assert ticks == [2]
    assert expired == []

    scheduler.advance(2)
    assert ticks == [2, 1, 0]
    assert expired == [1]
    assert not timer.running
    assert timer.fired


def test_fires_at_most_once(scheduler):
    timer, ticks, expired = make_timer(scheduler, budget=2)
    timer.start()
    scheduler.advance(10)
    timer.start()
    scheduler.advance(10)
    assert expired == [1]
    assert ticks == [1, 0]
    assert scheduler.pending == []


def test_cancel_before_expiry_means_no_late_fire(scheduler):
    timer, ticks, expired = make_timer(scheduler, budget=5)
    timer.start()
    scheduler.advance(2)
    timer.cancel()
    scheduler.advance(60)
    assert expired == []
    assert ticks == [4, 3]
    assert scheduler.pending == []


def test_stale_tick_after_cancel_is_a_no_op(scheduler):
    timer, ticks, expired = make_timer(scheduler, budget=1)
    timer.start()
    timer.cancel()
    # a callback that was already dequeued when cancel() ran
    timer._tick()
    assert ticks == []
    assert expired == []
    assert timer.remaining == 1


def test_cancel_from_tick_callback_stops_expiry(scheduler):
    expired = []
    timer = RoundTimer(1, budget=1, on_expire=expired.append, scheduler=scheduler)
    timer.on_tick = lambda remaining: timer.cancel()
    timer.start()
    scheduler.advance(5)
    assert expired == []
    assert not timer.fired


def test_stop_freezes_remaining_time(scheduler):
    timer, ticks, expired = make_timer(scheduler, budget=10)
    timer.start()
    scheduler.advance(4)
    timer.stop()
    scheduler.advance(20)
    assert timer.remaining == 6
    assert timer.elapsed == 4.0
    assert expired == []


def test_elapsed_is_clamped_to_budget(scheduler):
    timer, _, _ = make_timer(scheduler, budget=5)
    assert timer.elapsed == 0.0
    timer.start()
    scheduler.advance(2)
    assert timer.elapsed == 2.0
    scheduler.advance(10)
    assert timer.elapsed == 5.0
    timer.remaining = -3
    assert timer.elapsed == 5.0
    timer.remaining = 8
    assert timer.elapsed == 0.0
