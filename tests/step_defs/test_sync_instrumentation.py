"""
Step definitions for the instrumentation feature.

These tests verify that instrumented actions are transparent to callers,
that queries stay out of the history, and that history does not outlive
the cascade that produced it.
"""
import asyncio
import json

from pytest_bdd import given, parsers, scenarios, then, when

from concept_sync import InstrumentedAction, SyncError, actions, current_cascade, fresh_symbol

scenarios("../features/sync_instrumentation.feature")


@given(parsers.parse('a rule notifying "{message}" whenever "{intent}" completes'))
def notify_rule(test_context, message: str, intent: str):
    test_context["engine"].register({
        "Notify": {
            "when": actions((intent, {})),
            "then": actions(("Notification.notify", {"message": message})),
        },
    })


@when(parsers.parse('I call "{intent}" with name "{name}"'))
def call_with_name(test_context, intent: str, name: str):
    action = test_context["engine"].resolve_intent(intent)
    test_context["result"] = asyncio.run(action(name=name))


@when(parsers.parse('I call "{intent}" with no input'))
def call_without_input(test_context, intent: str):
    action = test_context["engine"].resolve_intent(intent)
    test_context["result"] = asyncio.run(action())


@when(parsers.parse('I call the query "{intent}"'))
def call_query(test_context, intent: str):
    action = test_context["engine"].resolve_intent(intent)
    test_context["result"] = asyncio.run(action())


@when(parsers.parse('I register a rule triggered by the query "{intent}"'))
def register_query_trigger(test_context, intent: str):
    try:
        test_context["engine"].register({
            "FromQuery": {
                "when": actions((intent, {})),
                "then": actions(("Notification.notify", {"message": "never"})),
            },
        })
    except SyncError as exc:
        test_context["error"] = exc


@then(parsers.parse('the result is a record with key "{key}" set to "{value}"'))
def result_is_record(test_context, key: str, value: str):
    assert test_context["result"] == {key: value}


@then(parsers.parse('the "{concept}" facade exposes "{first}" and "{second}"'))
def facade_exposes(test_context, concept: str, first: str, second: str):
    facade = test_context["facades"][concept]
    assert set(facade.actions) == {first, second}
    assert isinstance(getattr(facade, first), InstrumentedAction)
    assert isinstance(facade[second], InstrumentedAction)
    assert getattr(facade, first).concept == concept


@then(parsers.parse('the "{concept}" facade reads through to state "{attribute}"'))
def facade_reads_state(test_context, concept: str, attribute: str):
    facade = test_context["facades"][concept]
    assert getattr(facade, attribute) == getattr(test_context["concepts"][concept], attribute)


@then("no notification was sent")
def no_notification(test_context):
    assert test_context["concepts"]["Notification"].messages == []
    assert test_context["result"] == [{"count": 0}]


@then("nothing was traced")
def nothing_traced(test_context):
    assert test_context["trace"] == []


@then("the notification was traced as a reaction to the increment")
def traced_reaction(test_context):
    trace = test_context["trace"]
    assert trace[0].startswith("[sync] Counter.increment(")
    assert any("fire Notify" in line for line in trace)
    reactions = [line for line in trace if "Notification.notify(" in line]
    assert len(reactions) == 1
    assert reactions[0].endswith("<- Notify")
    assert reactions[0].startswith("[sync]   ")


# =============================================================================
# Mutating handlers
# =============================================================================


def _tagging_concepts(test_context):
    """Source/Sink concepts given as mappings; Sink.tag mutates what it is handed."""
    seen = test_context.setdefault("seen", {})

    def emit(meta):
        return {"emitted": True}

    def tag(meta):
        meta["tagged"] = True
        return {"tagged": True}

    def look(meta):
        seen["meta"] = meta
        emitted = [r for r in current_cascade().history if r.key == ("Source", "emit")]
        seen["history"] = emitted[0].input["meta"]
        return {}

    return {"Source": {"emit": emit}, "Sink": {"tag": tag, "look": look}}


@given(parsers.parse('a rule passing a nested record from "{source}" to a mutating "{sink}"'))
def mutating_rule(test_context, source: str, sink: str):
    engine = test_context["engine"]
    engine.instrument(_tagging_concepts(test_context))
    meta = fresh_symbol("meta")
    engine.register({
        "Tag": {
            "when": actions((source, {"meta": meta})),
            "then": actions((sink, {"meta": meta})),
        },
    })


@given(parsers.parse('a rule rereading the record once "{intent}" completes'))
def rereading_rule(test_context, intent: str):
    meta = fresh_symbol("meta")
    test_context["engine"].register({
        "Reread": {
            "when": actions(("Source.emit", {"meta": meta}), (intent, {"meta": meta})),
            "then": actions(("Sink.look", {"meta": meta})),
        },
    })


@when(parsers.parse("I emit the nested record {payload}"))
def emit_nested(test_context, payload: str):
    emit = test_context["engine"].resolve_intent("Source.emit")
    test_context["result"] = asyncio.run(emit(meta=json.loads(payload)))


@then(parsers.parse("the rereading rule saw the record {payload}"))
def reread_saw(test_context, payload: str):
    assert test_context["seen"]["meta"] == json.loads(payload)


@then(parsers.parse('the history still held {payload} for "{intent}"'))
def history_held(test_context, payload: str, intent: str):
    assert test_context["seen"]["history"] == json.loads(payload)


@then(parsers.parse('the trace shows "{fragment}"'))
def trace_shows(test_context, fragment: str):
    assert any(fragment in line for line in test_context["trace"])
