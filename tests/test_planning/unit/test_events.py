"""Test progress event payloads and sink delivery."""

import logging
import queue
from datetime import datetime

from flowpilot.planning.events import (
    CallbackEventSink,
    NullEventSink,
    ProgressEventType,
    QueueEventSink,
    context_found_event,
    emit_event,
    plan_generated_event,
    step_created_event,
)
from flowpilot.planning.ir_models import CoarsePlan, ContextItem, MaterializedStep, StepKind


def _plan() -> CoarsePlan:
    return CoarsePlan.model_validate(
        {
            "name": "Hourly digest",
            "description": "Sends an hourly digest",
            "steps": [{"type": "TRIGGER", "piece_name": "schedule", "action_or_trigger_name": "every_hour"}],
        }
    )


class TestPayloads:
    def test_context_found_uses_camel_case_keys(self):
        item = ContextItem(
            piece_name="slack", content="Send messages", similarity=0.75, logo_url="https://cdn.example.com/slack.png"
        )

        message = context_found_event([item]).to_message()

        assert message["type"] == "CONTEXT_FOUND"
        assert message["data"]["relevantPieces"] == [
            {
                "pieceName": "slack",
                "content": "Send messages",
                "logoUrl": "https://cdn.example.com/slack.png",
                "relevanceScore": 0.75,
            }
        ]

    def test_context_found_with_no_items(self):
        message = context_found_event([]).to_message()

        assert message["data"]["relevantPieces"] == []

    def test_timestamp_is_timezone_aware_iso8601(self):
        message = plan_generated_event(_plan()).to_message()

        parsed = datetime.fromisoformat(message["data"]["timestamp"])
        assert parsed.tzinfo is not None

    def test_plan_generated_carries_full_plan(self):
        message = plan_generated_event(_plan()).to_message()

        assert message["type"] == "PLAN_GENERATED"
        assert message["data"]["plan"]["steps"][0]["type"] == "TRIGGER"
        assert message["data"]["plan"]["steps"][0]["actionOrTriggerName"] == "every_hour"
        assert message["data"]["plan"]["name"] == "Hourly digest"

    def test_step_created_carries_step(self):
        step = MaterializedStep(name="trigger", type=StepKind.TRIGGER, display_name="Every Hour", piece_name="schedule")

        message = step_created_event(step).to_message()

        assert message["type"] == "STEP_CREATED"
        assert message["data"]["step"]["name"] == "trigger"
        assert message["data"]["step"]["input"] == {}
        assert message["data"]["step"]["displayName"] == "Every Hour"
        assert message["data"]["step"]["pieceName"] == "schedule"


class TestSinks:
    def test_emit_without_sink_is_noop(self):
        emit_event(None, context_found_event([]))

    def test_null_sink_accepts_messages(self):
        emit_event(NullEventSink(), context_found_event([]))

    def test_callback_sink_receives_message(self):
        received = []

        emit_event(CallbackEventSink(received.append), context_found_event([]))

        assert [message["type"] for message in received] == ["CONTEXT_FOUND"]

    def test_failing_callback_is_absorbed(self, caplog):
        def explode(message):
            raise ConnectionResetError("client went away")

        with caplog.at_level(logging.WARNING, logger="flowpilot.planning.events"):
            emit_event(CallbackEventSink(explode), context_found_event([]))

        assert "Dropped CONTEXT_FOUND event" in caplog.text

    def test_queue_sink_enqueues_in_order(self):
        event_queue = queue.Queue()
        sink = QueueEventSink(event_queue)

        emit_event(sink, context_found_event([]))
        emit_event(sink, plan_generated_event(_plan()))

        assert event_queue.get_nowait()["type"] == ProgressEventType.CONTEXT_FOUND.value
        assert event_queue.get_nowait()["type"] == ProgressEventType.PLAN_GENERATED.value

    def test_full_queue_drops_without_blocking(self, caplog):
        event_queue = queue.Queue(maxsize=1)
        sink = QueueEventSink(event_queue)

        with caplog.at_level(logging.WARNING, logger="flowpilot.planning.events"):
            emit_event(sink, context_found_event([]))
            emit_event(sink, plan_generated_event(_plan()))

        assert event_queue.qsize() == 1
        assert "Dropped PLAN_GENERATED event: observer queue is full" in caplog.text
