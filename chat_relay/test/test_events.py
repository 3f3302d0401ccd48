"""
Monitor event and metrics tests.
"""

from chat_relay.exceptions import ReadTimeout
from chat_relay.monitor import (
    EventDispatcher,
    EventType,
    MetricsCollector,
    create_connection_event,
    create_error_event,
    create_message_event,
)


def test_dispatcher_isolates_failing_sink():
    received = []

    def broken(event):
        raise RuntimeError("sink down")

    dispatcher = EventDispatcher(broken, received.append)
    event = create_connection_event(EventType.CONNECTION_ACCEPTED, "127.0.0.1:5000")
    dispatcher(event)

    assert received == [event]


def test_dispatcher_add_and_remove():
    received = []
    dispatcher = EventDispatcher(None)
    assert dispatcher.sinks == []

    dispatcher.add_sink(received.append)
    assert dispatcher.remove_sink(received.append)
    assert not dispatcher.remove_sink(received.append)

    dispatcher.emit(create_connection_event(EventType.SERVER_STARTED, "server"))
    assert received == []


def test_message_event_merges_data():
    event = create_message_event(
        EventType.MESSAGE_BROADCAST, "127.0.0.1:5000", size=42, data={"receivers": 3}
    )
    assert event.category == "message"
    assert event.data == {"size": 42, "receivers": 3}


def test_error_event_carries_error_details():
    error = ReadTimeout("127.0.0.1:5000", 30.0)
    event = create_error_event(
        EventType.CONNECTION_ERROR, error.peer, str(error), error, severity="warning"
    )

    data = event.to_dict()
    assert data["event_type"] == "connection_error"
    assert data["severity"] == "warning"
    assert data["category"] == "error"
    assert data["data"]["error_code"] == "CONN002"
    assert data["data"]["details"] == {"peer": "127.0.0.1:5000", "timeout": 30.0}
    assert "ReadTimeout" in data["exception"]


def test_metrics_summary():
    metrics = MetricsCollector()
    peer = "127.0.0.1:5000"

    metrics(create_connection_event(EventType.CONNECTION_ACCEPTED, peer))
    metrics(create_message_event(EventType.MESSAGE_BROADCAST, peer, size=10))
    metrics(create_message_event(EventType.MESSAGE_BROADCAST, peer, size=5))
    metrics(
        create_message_event(
            EventType.MESSAGE_LAGGED, peer, severity="warning", data={"skipped": 7}
        )
    )
    assert metrics.active_connections == 1

    metrics(
        create_connection_event(
            EventType.CONNECTION_CLOSED, peer, data={"reason": "peer closed"}
        )
    )
    metrics(create_error_event(EventType.ACCEPT_FAILED, "server", "Accept failed"))

    summary = metrics.get_summary()
    assert summary == {
        "active_connections": 0,
        "connections_accepted": 1,
        "connections_closed": 1,
        "connection_errors": 0,
        "accept_errors": 1,
        "messages_broadcast": 2,
        "bytes_broadcast": 15,
        "lag_events": 1,
        "messages_skipped": 7,
    }
    assert metrics.closed[0].reason == "peer closed"
    assert metrics.lags[0].skipped == 7
    assert metrics.render_summary().row_count == len(summary)
