"""
Steps shared by several sync features.
"""
from pytest_bdd import given, parsers, then

from concept_sync import SyncError, current_cascade


@given("the sample concepts are instrumented")
def sample_concepts_instrumented(test_context, engine, facades, concepts):
    """Expose the default engine and its façades to the steps."""
    test_context["engine"] = engine
    test_context["facades"] = facades
    test_context["concepts"] = concepts


@given(parsers.parse('a campaign named "{name}" already exists'))
def campaign_exists(test_context, name: str):
    """Seed campaign state directly, bypassing instrumentation."""
    campaigns = test_context["concepts"]["Campaign"].campaigns
    campaign_id = f"campaign-{len(campaigns) + 1}"
    campaigns[campaign_id] = {"id": campaign_id, "name": name}


@then(parsers.parse('the notifications are "{expected}"'))
def notifications_are(test_context, expected: str):
    messages = test_context["concepts"]["Notification"].messages
    assert messages == [part.strip() for part in expected.split(",")]


@then(parsers.parse('registration fails with "{kind}"'))
def registration_fails(test_context, kind: str):
    error = test_context.get("error")
    assert isinstance(error, SyncError), f"expected a failure, got {error!r}"
    assert error.kind == kind


@then(parsers.parse('the failure is "{kind}"'))
def failure_is(test_context, kind: str):
    error = test_context.get("error")
    assert isinstance(error, SyncError), f"expected a failure, got {error!r}"
    assert error.kind == kind


@then("no cascade is active")
def no_cascade_active():
    assert current_cascade() is None
