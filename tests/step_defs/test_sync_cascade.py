"""
Step definitions for the cascade feature.

These tests verify the re-entrancy guard and the isolation of concurrent
top-level calls.
"""
import asyncio

from pytest_bdd import given, parsers, scenarios, then, when

from concept_sync import EngineConfig, SyncDeclaration, SyncEngine, SyncError, actions, handle_request, variables

scenarios("../features/sync_cascade.feature")


@given(parsers.parse("an engine with max depth {depth:d}"))
def engine_with_depth(test_context, concepts, depth: int):
    engine = SyncEngine(
        config=EngineConfig(max_depth=depth, trace="trace"),
        output_sink=test_context["trace"].append,
    )
    test_context["engine"] = engine
    test_context["facades"] = engine.instrument(concepts)
    test_context["concepts"] = concepts


@given("a rule that pings again after every ping")
def ping_pong(test_context):
    Loop = test_context["facades"]["Loop"]
    test_context["engine"].register({
        "PingAgain": SyncDeclaration(
            when=actions((Loop.ping, {})),
            then=actions((Loop.ping, {})),
        ),
    })


@given("echo requests are answered by synchronizations")
def echo_rules(test_context):
    API = test_context["facades"]["API"]
    Echo = test_context["facades"]["Echo"]
    text, request, said = variables("text", "request", "said")
    test_context["engine"].register({
        "SayEcho": SyncDeclaration(
            when=actions((API.request, {"path": "/echo", "text": text})),
            then=actions((Echo.say, {"text": text})),
        ),
        "RespondEcho": SyncDeclaration(
            when=actions(
                (API.request, {"path": "/echo", "text": text}, {"request": request}),
                (Echo.say, {"text": text}, {"said": said}),
            ),
            then=actions((API.respond, {"request": request, "output": said})),
        ),
    })


@when("I ping expecting an engine failure")
def ping_failing(test_context):
    Loop = test_context["facades"]["Loop"]
    try:
        asyncio.run(Loop.ping())
    except SyncError as exc:
        test_context["error"] = exc


@when(parsers.parse('two echo requests for "{text}" run concurrently'))
def concurrent_echo(test_context, text: str):
    API = test_context["facades"]["API"]

    async def both():
        return await asyncio.gather(
            handle_request(API, "GET", "/echo", timeout=1.0, text=text),
            handle_request(API, "GET", "/echo", timeout=1.0, text=text),
        )

    test_context["results"] = asyncio.run(both())


@then(parsers.parse("the loop was pinged {count:d} times"))
def pinged_times(test_context, count: int):
    assert test_context["concepts"]["Loop"].pings == count


@then(parsers.parse('both handlers received "{text}"'))
def handlers_received(test_context, text: str):
    assert test_context["results"] == [text, text]


@then(parsers.parse("the API responded exactly {count:d} times"))
def responded_times(test_context, count: int):
    assert test_context["concepts"]["API"].respond_calls == count
