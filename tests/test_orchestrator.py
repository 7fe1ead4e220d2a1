"""
Orchestration tests for both dispatch policies.

Tests the per-item state machine:
- sequential dispatch order and failure isolation
- batched dispatch with request-level and embedded failures
- no duplicate submission on re-invocation
- stale responses never touch a superseded session
"""
import asyncio
from typing import List

import httpx
import pytest

from coloranalyzer.config import Config
from coloranalyzer.schemas import AnalysisResult
from coloranalyzer.services.client import AnalysisEntry, AnalysisServiceClient
from coloranalyzer.services.orchestrator import AnalysisOrchestrator, DispatchPolicy
from coloranalyzer.services.reliability import TransportError
from coloranalyzer.services.session import BatchSession, ItemStatus, SelectionItem
from coloranalyzer.utils.metrics import get_metrics


def make_session(make_image, *names) -> BatchSession:
    return BatchSession([SelectionItem(index=0, blob=make_image(name)) for name in names])


def statuses(session: BatchSession) -> List[str]:
    return [item.status.value for item in session]


class GatedClient:
    """Stub client whose analyze() calls block until released one by one."""

    def __init__(self):
        self.calls: List[List[str]] = []
        self.gates: List[asyncio.Event] = []
        self.started = asyncio.Event()

    async def analyze(self, files):
        self.calls.append([descriptor.name for descriptor in files])
        gate = asyncio.Event()
        self.gates.append(gate)
        self.started.set()
        await gate.wait()
        return [
            AnalysisEntry(result=AnalysisResult.model_validate({"match": {"name": "Late", "similarity": 1}}))
            for _ in files
        ]


class FailingClient:
    """Stub client that fails every request at the transport level."""

    def __init__(self):
        self.calls = 0

    async def analyze(self, files):
        self.calls += 1
        raise TransportError("An unknown error occurred")


class TestSequentialDispatch:
    """SEQUENTIAL_PER_ITEM"""

    @pytest.mark.asyncio
    async def test_failure_is_isolated(self, service_client, fake_service, make_image):
        session = make_session(make_image, "a.png", "fail_b.png", "c.png")
        orchestrator = AnalysisOrchestrator(service_client, Config())

        await orchestrator.analyze(session, DispatchPolicy.SEQUENTIAL_PER_ITEM)

        assert statuses(session) == ["done", "error", "done"]
        assert fake_service.state.requests == [["a.png"], ["fail_b.png"], ["c.png"]]
        assert session[1].error_message == "Could not analyze fail_b.png"
        assert session[0].result.match.name == "Auburn"
        assert session[2].result.match.name == "Auburn"

    @pytest.mark.asyncio
    async def test_bulk_marker_sets_all_loading_first(self, service_client, make_image):
        session = make_session(make_image, "a.png", "b.png", "c.png")
        orchestrator = AnalysisOrchestrator(service_client, Config(loading_marker="bulk"))
        events = []
        session.subscribe(lambda event: events.append((event.index, event.status.value)))

        await orchestrator.analyze(session, "sequential")

        assert events[:3] == [(0, "loading"), (1, "loading"), (2, "loading")]
        assert events[3:] == [(0, "done"), (1, "done"), (2, "done")]

    @pytest.mark.asyncio
    async def test_per_item_marker_interleaves(self, service_client, make_image):
        session = make_session(make_image, "a.png", "b.png")
        orchestrator = AnalysisOrchestrator(service_client, Config(loading_marker="per_item"))
        events = []
        session.subscribe(lambda event: events.append((event.index, event.status.value)))

        await orchestrator.analyze(session, DispatchPolicy.SEQUENTIAL_PER_ITEM)

        assert events == [(0, "loading"), (0, "done"), (1, "loading"), (1, "done")]

    @pytest.mark.asyncio
    async def test_one_request_in_flight_at_a_time(self, make_image):
        client = GatedClient()
        session = make_session(make_image, "a.png", "b.png")
        task = asyncio.create_task(AnalysisOrchestrator(client, Config()).analyze(session, "sequential"))

        await client.started.wait()
        assert client.calls == [["a.png"]]
        client.started.clear()
        client.gates[0].set()

        await client.started.wait()
        assert client.calls == [["a.png"], ["b.png"]]
        assert statuses(session) == ["done", "loading"]
        client.gates[1].set()
        await task

        assert statuses(session) == ["done", "done"]

    @pytest.mark.asyncio
    async def test_transport_failure_never_raises(self, make_image):
        client = FailingClient()
        session = make_session(make_image, "a.png", "b.png")

        await AnalysisOrchestrator(client, Config()).analyze(session, "sequential")

        assert client.calls == 2
        assert statuses(session) == ["error", "error"]
        assert {item.error_message for item in session} == {"An unknown error occurred"}


class TestBatchedDispatch:
    """BATCHED_SINGLE_REQUEST"""

    @pytest.mark.asyncio
    async def test_single_request_with_embedded_error(self, service_client, fake_service, make_image):
        session = make_session(make_image, "a.png", "broken.png", "cached.png")

        await AnalysisOrchestrator(service_client, Config()).analyze(session, DispatchPolicy.BATCHED_SINGLE_REQUEST)

        assert fake_service.state.requests == [["a.png", "broken.png", "cached.png"]]
        assert statuses(session) == ["done", "error", "done"]
        assert session[1].error_message == "Unsupported image content in broken.png"
        assert session[0].result.from_cache is False
        assert session[2].result.from_cache is True

    @pytest.mark.asyncio
    async def test_request_failure_fails_whole_batch(self, make_image):
        client = FailingClient()
        session = make_session(make_image, "a.png", "b.png", "c.png")

        await AnalysisOrchestrator(client, Config()).analyze(session, "batched")

        assert client.calls == 1
        assert statuses(session) == ["error", "error", "error"]
        assert len({item.error_message for item in session}) == 1

    @pytest.mark.asyncio
    async def test_service_detail_applied_to_every_item(self, service_client, make_image):
        session = make_session(make_image, "a.png", "fail.png")

        await AnalysisOrchestrator(service_client, Config()).analyze(session, "batched")

        assert [item.error_message for item in session] == ["Could not analyze fail.png"] * 2

    @pytest.mark.asyncio
    async def test_policy_defaults_to_config(self, service_client, fake_service, make_image):
        session = make_session(make_image, "a.png", "b.png")
        await AnalysisOrchestrator(service_client, Config(dispatch_policy="batched")).analyze(session)
        assert fake_service.state.requests == [["a.png", "b.png"]]


class TestReinvocation:
    """At most one attempt per item"""

    @pytest.mark.asyncio
    async def test_settled_items_not_resubmitted(self, service_client, fake_service, make_image):
        session = make_session(make_image, "a.png", "fail.png")
        orchestrator = AnalysisOrchestrator(service_client, Config())

        await orchestrator.analyze(session)
        await orchestrator.analyze(session)

        assert fake_service.state.requests == [["a.png"], ["fail.png"]]
        assert statuses(session) == ["done", "error"]

    @pytest.mark.asyncio
    async def test_concurrent_call_skips_loading_items(self, make_image):
        client = GatedClient()
        session = make_session(make_image, "a.png")
        orchestrator = AnalysisOrchestrator(client, Config())
        task = asyncio.create_task(orchestrator.analyze(session))
        await client.started.wait()

        await orchestrator.analyze(session)
        client.gates[0].set()
        await task

        assert client.calls == [["a.png"]]
        assert statuses(session) == ["done"]

    @pytest.mark.asyncio
    async def test_concurrent_call_with_per_item_marker(self, make_image):
        client = GatedClient()
        session = make_session(make_image, "a.png", "b.png")
        orchestrator = AnalysisOrchestrator(client, Config(loading_marker="per_item"))
        first = asyncio.create_task(orchestrator.analyze(session))
        await client.started.wait()

        second = asyncio.create_task(orchestrator.analyze(session))
        while len(client.gates) < 2:
            await asyncio.sleep(0)
        client.gates[0].set()
        client.gates[1].set()
        await asyncio.gather(first, second)

        assert client.calls == [["a.png"], ["b.png"]]
        assert statuses(session) == ["done", "done"]


class TestStaleResponseGuard:
    """Superseded sessions are never mutated"""

    @pytest.mark.asyncio
    async def test_late_batched_response_dropped(self, make_image):
        client = GatedClient()
        old = make_session(make_image, "a.png", "b.png")
        orchestrator = AnalysisOrchestrator(client, Config())
        task = asyncio.create_task(orchestrator.analyze(old, "batched"))
        await client.started.wait()

        old.invalidate()
        new = make_session(make_image, "c.png")
        client.gates[0].set()
        await task

        assert statuses(old) == ["loading", "loading"]
        assert statuses(new) == ["pending"]
        assert get_metrics().get_counter("stale_responses_total") == 1

    @pytest.mark.asyncio
    async def test_sequential_stops_dispatching(self, make_image):
        client = GatedClient()
        old = make_session(make_image, "a.png", "b.png", "c.png")
        task = asyncio.create_task(AnalysisOrchestrator(client, Config()).analyze(old, "sequential"))
        await client.started.wait()

        old.invalidate()
        client.gates[0].set()
        await task

        assert client.calls == [["a.png"]]
        assert old[0].result is None

    @pytest.mark.asyncio
    async def test_inactive_session_ignored(self, make_image):
        client = GatedClient()
        session = make_session(make_image, "a.png")
        session.invalidate()

        await AnalysisOrchestrator(client, Config()).analyze(session)

        assert client.calls == []


class TestUnexpectedFailures:
    """Nothing is left loading when the client misbehaves"""

    @pytest.mark.asyncio
    @pytest.mark.parametrize("policy", ["sequential", "batched"])
    async def test_malformed_color_entry(self, make_image, policy):
        payload = {"results": [{"dominant": [{"hex": [None, 0, 0], "percentage": 50}]}]}
        http_client = httpx.AsyncClient(
            transport=httpx.MockTransport(lambda request: httpx.Response(200, json=payload)),
            base_url="http://testserver",
        )
        session = make_session(make_image, "a.png")
        orchestrator = AnalysisOrchestrator(AnalysisServiceClient(Config(), http_client=http_client), Config())

        await orchestrator.analyze(session, policy)

        assert statuses(session) == ["error"]
        assert session[0].error_message == "An unknown error occurred"

    @pytest.mark.asyncio
    async def test_unexpected_client_exception(self, make_image):
        class BrokenClient:
            async def analyze(self, files):
                raise RuntimeError("boom")

        session = make_session(make_image, "a.png", "b.png")

        await AnalysisOrchestrator(BrokenClient(), Config()).analyze(session)

        assert statuses(session) == ["error", "error"]
        assert session[0].error_message == "An unknown error occurred"
        assert get_metrics().get_counter("analyze_request_failures_total_unexpected") == 2
