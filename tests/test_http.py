"""
Tests for HttpClient retry/backoff and JSON-RPC handling, driven by a
scripted aiohttp-like session.
"""

from __future__ import annotations

import asyncio
import json
from unittest.mock import AsyncMock, MagicMock

import aiohttp
import pytest
from aiolimiter import AsyncLimiter

from conftest import RecordingSleep
from token_pnl.config import Settings
from token_pnl.errors import HttpStatusError, RpcError
from token_pnl.http import HELIUS, JUPITER, HttpClient, _redact


class FakeResponse:
    def __init__(self, status: int, body, headers=None):
        self.status = status
        self.headers = headers or {}
        self._text = body if isinstance(body, str) else json.dumps(body)

    async def text(self):
        return self._text

    async def json(self, content_type=None):
        return json.loads(self._text)

    async def __aenter__(self):
        return self

    async def __aexit__(self, exc_type, exc, tb):
        return False


class FakeSession:
    """Hands out scripted responses in order; an Exception is raised instead."""

    def __init__(self, responses):
        self.responses = list(responses)
        self.requests = []
        self.closed = False

    def request(self, method, url, **kwargs):
        self.requests.append((method, url, kwargs))
        answer = self.responses.pop(0)
        if isinstance(answer, BaseException):
            raise answer
        return answer


def _client(responses, **settings_overrides):
    values = dict(helius_api_key="secret", http_max_retries=3, http_backoff_base=1.0)
    values.update(settings_overrides)
    helius = MagicMock()
    helius.acquire = AsyncMock()
    jupiter = MagicMock()
    jupiter.acquire = AsyncMock()
    sleep = RecordingSleep()
    client = HttpClient(helius, jupiter, settings=Settings(**values), session=FakeSession(responses), sleep=sleep)
    return client, helius, jupiter, sleep


def test_success_returns_parsed_json():
    client, _, _, sleep = _client([FakeResponse(200, {"ok": 1})])

    assert asyncio.run(client.get_json("https://x.test/a")) == {"ok": 1}
    assert sleep.delays == []


def test_429_honours_retry_after_then_succeeds():
    client, _, _, sleep = _client([
        FakeResponse(429, "slow down", headers={"Retry-After": "2"}),
        FakeResponse(200, {"ok": 1}),
    ])

    assert asyncio.run(client.get_json("https://x.test/a")) == {"ok": 1}
    assert len(sleep.delays) == 1
    assert 2.5 <= sleep.delays[0] <= 3.5


def test_server_errors_exhaust_retries():
    client, _, _, sleep = _client([FakeResponse(503, "busy")] * 3)

    with pytest.raises(HttpStatusError) as exc_info:
        asyncio.run(client.get_json("https://x.test/a"))

    assert exc_info.value.status == 503
    assert len(sleep.delays) == 3


def test_client_error_raises_immediately():
    client, _, _, sleep = _client([FakeResponse(401, "bad key"), FakeResponse(200, {})])

    with pytest.raises(HttpStatusError) as exc_info:
        asyncio.run(client.get_json("https://x.test/a"))

    assert exc_info.value.status == 401
    assert sleep.delays == []
    assert len(client.session.requests) == 1


def test_network_error_retried_then_reraised():
    err = aiohttp.ClientConnectionError("reset")
    client, _, _, _ = _client([err, err, err])

    with pytest.raises(aiohttp.ClientConnectionError):
        asyncio.run(client.get_json("https://x.test/a"))


def test_rpc_returns_result_and_uses_helius_bucket():
    client, helius, jupiter, _ = _client([FakeResponse(200, {"jsonrpc": "2.0", "id": 1, "result": [1, 2]})])

    assert asyncio.run(client.rpc("getSignaturesForAddress", ["w", {"limit": 2}])) == [1, 2]

    helius.acquire.assert_awaited_once()
    jupiter.acquire.assert_not_awaited()
    method, url, kwargs = client.session.requests[0]
    assert method == "POST"
    assert kwargs["json"]["method"] == "getSignaturesForAddress"
    assert kwargs["json"]["params"] == ["w", {"limit": 2}]


def test_rpc_error_body_raises_rpc_error():
    client, _, _, _ = _client([FakeResponse(200, {"jsonrpc": "2.0", "id": 1, "error": {"code": -32602, "message": "bad"}})])

    with pytest.raises(RpcError) as exc_info:
        asyncio.run(client.rpc("getAsset", {"id": "m"}))

    assert exc_info.value.method == "getAsset"


def test_enhanced_transactions_posts_signatures_with_key():
    client, helius, _, _ = _client([FakeResponse(200, [])])

    assert asyncio.run(client.get_enhanced_transactions(["s1", "s2"])) == []

    method, url, kwargs = client.session.requests[0]
    assert url == "https://api.helius.xyz/v0/transactions"
    assert kwargs["params"] == {"api-key": "secret"}
    assert kwargs["json"] == {"transactions": ["s1", "s2"]}
    helius.acquire.assert_awaited_once()


def test_limiter_selection():
    client, helius, jupiter, _ = _client([])
    assert client.limiter_for(HELIUS) is helius
    assert client.limiter_for(JUPITER) is jupiter
    assert client.limiter_for(None) is None


def test_redact_hides_api_key():
    assert _redact("https://h.test/?api-key=secret&x=1") == "https://h.test/?api-key=***&x=1"
    assert _redact("https://h.test/?api-key=secret") == "https://h.test/?api-key=***"
    assert _redact("https://h.test/") == "https://h.test/"


def test_requests_wait_for_limiter_tokens():
    limiter = AsyncLimiter(2, 60)
    session = FakeSession([FakeResponse(200, {"result": i}) for i in range(3)])
    client = HttpClient(limiter, limiter, settings=Settings(helius_api_key="k"), session=session, sleep=RecordingSleep())

    async def run():
        calls = [client.get_json("https://x.test/a", rate_key=HELIUS) for _ in range(3)]
        await asyncio.wait_for(asyncio.gather(*calls), 0.2)

    with pytest.raises(asyncio.TimeoutError):
        asyncio.run(run())

    # bucket of 2 tokens: the third request is still waiting for a refill
    assert len(session.requests) == 2


def test_default_buckets_follow_passed_settings():
    slow = Settings(helius_api_key="k", helius_rps=2, jupiter_rps=1, rate_limit_period=5.0)
    fast = Settings(helius_api_key="k", helius_rps=50, jupiter_rps=4, rate_limit_period=1.0)

    slow_client = HttpClient(settings=slow, session=FakeSession([]))
    same_rates = HttpClient(settings=slow, session=FakeSession([]))
    fast_client = HttpClient(settings=fast, session=FakeSession([]))

    helius = slow_client.limiter_for(HELIUS)
    assert (helius.max_rate, helius.time_period) == (2, 5.0)
    assert slow_client.limiter_for(JUPITER).max_rate == 1
    assert fast_client.limiter_for(HELIUS).max_rate == 50
    assert fast_client.limiter_for(JUPITER).max_rate == 4
    # clients with the same rates share one bucket per upstream
    assert same_rates.limiter_for(HELIUS) is helius
    assert fast_client.limiter_for(HELIUS) is not helius
