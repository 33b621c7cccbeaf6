import pytest

from difficulty.services.clock import ManualClock, MonotonicClock, Scheduler


def test_manual_clock_never_moves_backwards() -> None:
    clock = ManualClock(start=10.0)
    clock.advance(5.0)
    assert clock.now() == 15.0
    with pytest.raises(ValueError):
        clock.set(1.0)


def test_advance_fires_tasks_in_due_order() -> None:
    clock = ManualClock()
    scheduler = Scheduler(clock)
    fired: list[tuple[str, float]] = []
    scheduler.every(10.0, lambda: fired.append(("fast", clock.now())), "fast")
    scheduler.every(25.0, lambda: fired.append(("slow", clock.now())), "slow")

    runs = scheduler.advance(30.0)

    assert runs == 4
    assert fired == [("fast", 10.0), ("fast", 20.0), ("slow", 25.0), ("fast", 30.0)]
    assert clock.now() == 30.0


def test_run_pending_coalesces_missed_runs() -> None:
    clock = ManualClock()
    scheduler = Scheduler(clock)
    calls: list[float] = []
    scheduler.every(10.0, lambda: calls.append(clock.now()), "tick")

    clock.advance(35.0)
    assert scheduler.run_pending() == 1
    assert scheduler.task("tick").next_due == 45.0


def test_cancel_all_stops_every_task() -> None:
    clock = ManualClock()
    scheduler = Scheduler(clock)
    calls: list[str] = []
    scheduler.every(5.0, lambda: calls.append("a"), "a")
    scheduler.every(5.0, lambda: calls.append("b"), "b")

    scheduler.cancel_all()
    scheduler.advance(60.0)

    assert calls == []
    assert scheduler.task_names == []


def test_failing_task_keeps_its_schedule() -> None:
    clock = ManualClock()
    scheduler = Scheduler(clock)

    def explode() -> None:
        raise RuntimeError("boom")

    scheduler.every(10.0, explode, "broken")
    scheduler.advance(20.0)

    assert scheduler.task("broken").runs == 2


def test_registering_same_name_replaces_task() -> None:
    clock = ManualClock()
    scheduler = Scheduler(clock)
    calls: list[str] = []
    scheduler.every(10.0, lambda: calls.append("old"), "job")
    scheduler.every(10.0, lambda: calls.append("new"), "job")

    scheduler.advance(10.0)

    assert calls == ["new"]


def test_advance_requires_manual_clock() -> None:
    with pytest.raises(TypeError):
        Scheduler(MonotonicClock()).advance(1.0)
