from surveysez.services.games.timers import TimeoutRegistry, TurnTimer


def test_timer_counts_down_from_start(clock):
    timer = TurnTimer(clock)
    assert timer.remaining() is None
    timer.start(30000)
    clock.advance(12000)
    assert timer.remaining() == 18000
    assert not timer.is_expired()
    clock.advance(20000)
    assert timer.remaining() == 0
    assert timer.is_expired()


def test_pause_freezes_remaining_and_resume_continues(clock):
    timer = TurnTimer(clock)
    timer.start(30000)
    clock.advance(10000)
    assert timer.pause()
    clock.advance(60000)
    assert timer.remaining() == 20000
    assert not timer.is_expired()
    # Second pause is refused
    assert not timer.pause()
    assert timer.resume()
    assert not timer.resume()
    clock.advance(5000)
    assert timer.remaining() == 15000
    assert timer.snapshot()['total_duration'] == 30000


def test_snapshot_round_trip_keeps_wall_clock(clock):
    timer = TurnTimer(clock)
    timer.start(30000)
    clock.advance(4000)
    restored = TurnTimer.from_dict(timer.to_dict(), clock)
    clock.advance(1000)
    assert restored.remaining() == 25000

    timer.pause()
    paused = TurnTimer.from_dict(timer.to_dict(), clock)
    clock.advance(9000)
    assert paused.paused
    assert paused.remaining() == 25000


def test_clear_returns_timer_to_idle(clock):
    timer = TurnTimer(clock)
    timer.start(1000)
    timer.clear()
    assert timer.is_idle
    assert timer.snapshot() is None
    assert not timer.is_expired()


def test_timeout_elapses_on_duration_or_condition(clock):
    offline = {'value': False}
    timeouts = TimeoutRegistry(clock)
    assert not timeouts.has_elapsed('results-phase')

    timeouts.start('results-phase', 15000, lambda: offline['value'])
    clock.advance(14999)
    assert not timeouts.has_elapsed('results-phase')
    offline['value'] = True
    assert timeouts.has_elapsed('results-phase')
    offline['value'] = False
    clock.advance(1)
    assert timeouts.has_elapsed('results-phase')

    timeouts.clear('results-phase')
    assert not timeouts.is_armed('results-phase')
    assert not timeouts.has_elapsed('results-phase')


def test_timeout_restore_uses_saved_start(clock):
    timeouts = TimeoutRegistry(clock)
    timeouts.start('continue-phase', 15000)
    saved = timeouts.to_dict()
    assert saved == {'continue-phase': {'started_at': clock(), 'duration': 15000}}

    clock.advance(16000)
    restored = TimeoutRegistry(clock)
    item = saved['continue-phase']
    restored.restore('continue-phase', item['started_at'], item['duration'])
    assert restored.has_elapsed('continue-phase')
