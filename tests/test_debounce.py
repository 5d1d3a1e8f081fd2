from mindmesh.debounce import Debouncer


def make(scheduler, delay=300):
    calls = []
    return Debouncer(scheduler, delay, lambda key, value: calls.append((key, value))), calls


def test_last_value_wins_after_quiet_period(scheduler):
    debouncer, calls = make(scheduler)
    debouncer.submit("a", 1)
    scheduler.advance(200)
    debouncer.submit("a", 2)
    scheduler.advance(299)
    assert calls == []
    scheduler.advance(1)
    assert calls == [("a", 2)]
    assert not debouncer.is_pending("a")


def test_resubmitting_replaces_the_timer(scheduler):
    debouncer, _ = make(scheduler)
    for value in range(5):
        debouncer.submit("a", value)
    assert scheduler.pending_timers == 1
    assert debouncer.pending_value("a") == 4


def test_flush_and_cancel(scheduler):
    debouncer, calls = make(scheduler)
    debouncer.submit("a", 1)
    debouncer.submit("b", 2)
    assert debouncer.flush("a")
    assert not debouncer.flush("a")
    assert debouncer.cancel("b")
    scheduler.advance(1000)
    assert calls == [("a", 1)]
    assert scheduler.pending_timers == 0


def test_flush_all(scheduler):
    debouncer, calls = make(scheduler)
    debouncer.submit("a", 1)
    debouncer.submit("b", 2)
    debouncer.flush_all()
    assert sorted(calls) == [("a", 1), ("b", 2)]


def test_cancel_all(scheduler):
    debouncer, calls = make(scheduler)
    debouncer.submit("a", 1)
    debouncer.submit("b", 2)
    debouncer.cancel_all()
    scheduler.advance(1000)
    assert calls == []
