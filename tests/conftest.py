"""
Pytest configuration and shared fixtures for engine tests.

The concepts below are deliberately small: they hold in-memory state and log
the inputs they receive so tests can assert on what synchronizations did.
"""
import asyncio
from typing import Any, Dict, List

import pytest

from concept_sync import APIConcept, EngineConfig, SyncEngine


class CampaignConcept:
    def __init__(self) -> None:
        self.campaigns: Dict[str, Dict[str, Any]] = {}
        self.calls: List[Dict[str, Any]] = []

    def create(self, name: str, **extra: Any) -> Dict[str, Any]:
        """Create a campaign with a unique name."""
        self.calls.append({"name": name, **extra})
        if any(c["name"] == name for c in self.campaigns.values()):
            return {"error": "duplicate"}
        campaign_id = f"campaign-{len(self.campaigns) + 1}"
        self.campaigns[campaign_id] = {"id": campaign_id, "name": name, **extra}
        return {"id": campaign_id}

    def _get_by_id(self, id: str) -> List[Dict[str, Any]]:
        """Look up a campaign by id."""
        campaign = self.campaigns.get(id)
        return [dict(campaign)] if campaign else []


class CounterConcept:
    def __init__(self) -> None:
        self.count = 0

    def increment(self) -> Dict[str, Any]:
        self.count += 1
        return {}

    def _get_count(self) -> List[Dict[str, Any]]:
        return [{"count": self.count}]


class ButtonConcept:
    def clicked(self, kind: str) -> Dict[str, Any]:
        return {"kind": kind}


class NotificationConcept:
    def __init__(self) -> None:
        self.messages: List[str] = []

    def notify(self, message: str) -> Dict[str, Any]:
        self.messages.append(message)
        return {"message": message}


class LoopConcept:
    def __init__(self) -> None:
        self.pings = 0

    def ping(self) -> Dict[str, Any]:
        self.pings += 1
        return {"pings": self.pings}


class EchoConcept:
    """Async concept; yields to the event loop before answering."""

    def __init__(self) -> None:
        self.said: List[str] = []

    async def say(self, text: str) -> Dict[str, Any]:
        await asyncio.sleep(0.01)
        self.said.append(text)
        return {"said": text}


class CountingAPIConcept(APIConcept):
    def __init__(self) -> None:
        super().__init__()
        self.respond_calls = 0

    def respond(self, request: str, output: Any) -> Dict[str, Any]:
        self.respond_calls += 1
        return super().respond(request, output)


@pytest.fixture
def test_context():
    """Shared context for passing data between steps."""
    return {"trace": []}


def make_concepts():
    """Fresh, un-instrumented concept instances."""
    return {
        "API": CountingAPIConcept(),
        "Campaign": CampaignConcept(),
        "Counter": CounterConcept(),
        "Button": ButtonConcept(),
        "Notification": NotificationConcept(),
        "Loop": LoopConcept(),
        "Echo": EchoConcept(),
    }


@pytest.fixture
def concept_factory():
    """Callable returning a fresh set of concepts, for tests that need several."""
    return make_concepts


@pytest.fixture
def concepts():
    return make_concepts()


@pytest.fixture
def engine(test_context):
    """An engine with tracing captured into test_context["trace"]."""
    config = EngineConfig(max_depth=50, trace="trace")
    return SyncEngine(config=config, output_sink=test_context["trace"].append)


@pytest.fixture
def facades(engine, concepts):
    """All sample concepts, instrumented."""
    return engine.instrument(concepts)
