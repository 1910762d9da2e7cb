"""
Tests for the invoice readiness poller.
"""
import httpx
import pytest

from checkout_api.schemas.invoice import InvoiceStatusResponse
from checkout_api.services.invoice_poller import (
    InvoiceReadinessPoller,
    PollPhase,
    PollState,
    http_status_query,
)


class RecordingSleep:
    def __init__(self) -> None:
        self.calls: list[float] = []

    async def __call__(self, seconds: float) -> None:
        self.calls.append(seconds)


def scripted_query(*responses):
    """Query returning responses in order; exceptions are raised."""
    remaining = list(responses)
    calls: list[str] = []

    async def query(session_id: str) -> InvoiceStatusResponse:
        calls.append(session_id)
        response = remaining.pop(0) if remaining else InvoiceStatusResponse(ready=False)
        if isinstance(response, Exception):
            raise response
        return response

    query.calls = calls
    return query


NOT_READY = InvoiceStatusResponse(ready=False)
READY = InvoiceStatusResponse(ready=True, invoice_url="/invoices/invoice-cs_a.pdf")


async def test_defaults_come_from_settings():
    poller = InvoiceReadinessPoller(scripted_query())

    assert poller.max_attempts == 12
    assert poller.interval == 5.0


async def test_ready_on_third_attempt():
    sleep = RecordingSleep()
    query = scripted_query(NOT_READY, NOT_READY, READY)
    poller = InvoiceReadinessPoller(query, sleep=sleep)

    state = await poller.run("cs_a")

    assert state.phase == PollPhase.READY
    assert state.invoice_url == "/invoices/invoice-cs_a.pdf"
    assert len(query.calls) == 3
    assert sleep.calls == [5.0, 5.0]


async def test_exhausts_after_max_attempts():
    sleep = RecordingSleep()
    query = scripted_query()
    poller = InvoiceReadinessPoller(query, max_attempts=12, interval=5.0, sleep=sleep)

    state = await poller.run("mock_abc")

    assert state.phase == PollPhase.EXHAUSTED
    assert state.attempt == 12
    assert state.invoice_url is None
    assert len(query.calls) == 12
    assert len(sleep.calls) == 11


async def test_query_errors_count_as_attempts():
    query = scripted_query(httpx.ConnectError("down"), RuntimeError("boom"), READY)
    poller = InvoiceReadinessPoller(query, max_attempts=3, sleep=RecordingSleep())

    state = await poller.run("cs_a")

    assert state.phase == PollPhase.READY
    assert len(query.calls) == 3


async def test_ready_without_url_is_not_ready():
    query = scripted_query(InvoiceStatusResponse(ready=True, invoice_url=None))
    poller = InvoiceReadinessPoller(query, max_attempts=1, sleep=RecordingSleep())

    state = await poller.run("cs_a")

    assert state.phase == PollPhase.EXHAUSTED


async def test_tick_on_terminal_state_is_noop():
    query = scripted_query(READY)
    poller = InvoiceReadinessPoller(query, sleep=RecordingSleep())
    done = PollState(phase=PollPhase.READY, attempt=2, invoice_url="/invoices/x.pdf")

    assert await poller.tick(done, "cs_a") is done
    assert query.calls == []


def test_rejects_zero_attempts():
    with pytest.raises(ValueError):
        InvoiceReadinessPoller(scripted_query(), max_attempts=0)


async def test_http_status_query():
    seen = []

    def handler(request: httpx.Request) -> httpx.Response:
        seen.append(request)
        return httpx.Response(200, json={"ready": True, "invoiceUrl": "/invoices/invoice-cs_a.pdf"})

    async with httpx.AsyncClient(transport=httpx.MockTransport(handler), base_url="http://shop") as client:
        query = http_status_query(client)
        result = await query("cs_a")

    assert result.ready is True
    assert result.invoice_url == "/invoices/invoice-cs_a.pdf"
    assert seen[0].url.path == "/invoice-status"
    assert seen[0].url.params["session_id"] == "cs_a"


async def test_http_status_query_raises_on_server_error():
    transport = httpx.MockTransport(lambda request: httpx.Response(500))
    async with httpx.AsyncClient(transport=transport, base_url="http://shop") as client:
        poller = InvoiceReadinessPoller(
            http_status_query(client),
            max_attempts=2,
            sleep=RecordingSleep(),
        )
        state = await poller.run("cs_a")

    assert state.phase == PollPhase.EXHAUSTED
    assert state.attempt == 2
