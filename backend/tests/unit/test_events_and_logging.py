import json
import logging

from app.utils.events import EventBus, LoggingHandler, SuggestionActionEvent
from app.utils.logging import JsonFormatter, RequestContextFilter, request_id_var


def make_record(message="reorder_suggestion_actioned suggestion_id=%s", args=(7,)):
    return logging.LogRecord("app.test", logging.INFO, __file__, 1, message, args, None)


class TestJsonLogging:

    def test_record_carries_request_id_and_service(self):
        token = request_id_var.set("req-123")
        try:
            record = make_record()
            RequestContextFilter().filter(record)
        finally:
            request_id_var.reset(token)

        payload = json.loads(JsonFormatter(service="nimbus-test").format(record))

        assert payload["message"] == "reorder_suggestion_actioned suggestion_id=7"
        assert payload["service"] == "nimbus-test"
        assert payload["request_id"] == "req-123"
        assert payload["worker"]

    def test_background_records_omit_request_id(self):
        record = make_record()
        RequestContextFilter().filter(record)

        payload = json.loads(JsonFormatter().format(record))

        assert "request_id" not in payload


class TestEventBus:

    def test_handlers_receive_subclass_events(self):
        bus = EventBus()
        received = []
        bus.subscribe(SuggestionActionEvent, received.append)

        event = SuggestionActionEvent(suggestion_id=1, product_id=2, action="approve", new_status="approved")
        bus.publish(event)

        assert received == [event]
        assert event.to_dict()["action"] == "approve"

    def test_failing_handler_does_not_reach_publisher(self, caplog):
        bus = EventBus()
        calls = []

        def broken(_event):
            raise RuntimeError("handler down")

        bus.subscribe(SuggestionActionEvent, broken)
        bus.subscribe(SuggestionActionEvent, calls.append)

        with caplog.at_level(logging.ERROR, logger="app.utils.events"):
            bus.publish(SuggestionActionEvent(suggestion_id=1))

        assert len(calls) == 1
        assert "event_handler_failed" in caplog.text

    def test_logging_handler_writes_event_payload(self, caplog):
        with caplog.at_level(logging.INFO, logger="app.events"):
            LoggingHandler()(SuggestionActionEvent(suggestion_id=5, action="reject"))

        record = caplog.records[-1]
        assert record.getMessage() == "domain_event name=SuggestionActionEvent"
        assert record.event["suggestion_id"] == 5
