from difficulty.services.notifications import (
    ActionApplied,
    Notification,
    NotificationBus,
    ParametersAdjusted,
    PlayerAdded,
)


def _parameters_adjusted(player_id: str = "p1") -> ParametersAdjusted:
    return ParametersAdjusted(
        timestamp=1.0,
        player_id=player_id,
        target="ai_skill_level",
        old_value=5.0,
        new_value=4.0,
        effective_at=1.0,
    )


def test_subscribers_receive_subclass_messages() -> None:
    bus = NotificationBus()
    specific: list[Notification] = []
    base: list[Notification] = []
    everything: list[Notification] = []
    bus.subscribe(ParametersAdjusted, specific.append)
    bus.subscribe(ActionApplied, base.append)
    bus.subscribe(Notification, everything.append)

    bus.publish(_parameters_adjusted())
    bus.publish(PlayerAdded(timestamp=2.0, player_id="p2", difficulty="normal"))

    assert len(specific) == 1
    assert len(base) == 1
    assert len(everything) == 2


def test_unsubscribe_stops_delivery() -> None:
    bus = NotificationBus()
    received: list[Notification] = []
    unsubscribe = bus.subscribe(PlayerAdded, received.append)

    unsubscribe()
    bus.publish(PlayerAdded(timestamp=0.0, player_id="p1", difficulty="easy"))

    assert received == []
    assert len(bus.of_type(PlayerAdded)) == 1


def test_failing_handler_does_not_block_others() -> None:
    bus = NotificationBus()
    received: list[Notification] = []

    def broken(message: Notification) -> None:
        raise RuntimeError("handler failure")

    bus.subscribe(ParametersAdjusted, broken)
    bus.subscribe(ParametersAdjusted, received.append)
    bus.publish(_parameters_adjusted())

    assert len(received) == 1


def test_history_is_bounded() -> None:
    bus = NotificationBus(history_size=3)
    for index in range(5):
        bus.publish(PlayerAdded(timestamp=float(index), player_id=f"p{index}", difficulty="normal"))

    assert [message.player_id for message in bus.history] == ["p2", "p3", "p4"]
