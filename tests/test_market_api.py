from __future__ import annotations

import pytest
import ujson

from errors import TransportError
from market_api import MarketApiClient


class FakeResponse:
    def __init__(self, status_code=200, payload=None):
        self.status_code = status_code
        self.text = ujson.dumps(payload)

    def raise_for_status(self):
        if self.status_code >= 400:
            raise RuntimeError(f"HTTP Error {self.status_code}")


class FakeSessionFactory:
    def __init__(self, *responses):
        self.responses = list(responses)
        self.requests = []

    def __call__(self):
        return self

    async def __aenter__(self):
        return self

    async def __aexit__(self, *exc):
        return False

    async def get(self, url, headers=None):
        self.requests.append((url, headers))
        response = self.responses.pop(0)
        if isinstance(response, Exception):
            raise response
        return response


def _client(*responses):
    factory = FakeSessionFactory(*responses)
    return MarketApiClient(session_factory=factory, retries_429=3, delay_429=0), factory


JUP_TOKENS = [
    {"address": "So11111111111111111111111111111111111111112", "symbol": "SOL", "name": "Wrapped SOL", "decimals": 9},
    {"address": "A1", "symbol": "DUP", "decimals": 6, "tags": ["community"]},
    {"address": "A2", "symbol": "DUP", "decimals": 6, "logoURI": None},
]


async def test_rate_limit_is_retried():
    client, factory = _client(FakeResponse(429), FakeResponse(200, JUP_TOKENS))
    tokens = await client.get_jup_token_list()

    assert [token.address for token in tokens] == [t["address"] for t in JUP_TOKENS]
    assert len(factory.requests) == 2
    assert factory.requests[0][0] == "https://token.jup.ag/strict"


async def test_rate_limit_retries_exhausted():
    client, _ = _client(FakeResponse(429), FakeResponse(429), FakeResponse(429))
    with pytest.raises(TransportError, match="exhausted"):
        await client.get_jup_token_list("all")


async def test_bad_status_and_network_errors_are_transport_errors():
    client, _ = _client(FakeResponse(500, {}))
    with pytest.raises(TransportError):
        await client.get_jup_token_list()

    client, _ = _client(ConnectionError("reset"))
    with pytest.raises(TransportError):
        await client.get_jup_token_list()


async def test_jup_token_map_groups_symbols():
    client, _ = _client(FakeResponse(200, JUP_TOKENS))
    token_map = await client.get_jup_token_map()

    assert token_map.address_map["A1"].tags == ["community"]
    assert token_map.address_map["A2"].logo_uri == ""
    assert [token.address for token in token_map.symbol_map["DUP"]] == ["A1", "A2"]


async def test_gmgn_hot_tokens():
    payload = {"code": 0, "data": {"rank": [{"address": "X", "symbol": "HOT", "hot_level": 3}]}}
    client, factory = _client(FakeResponse(200, payload))
    tokens = await client.get_gmgn_hot_tokens()

    assert tokens[0].address == "X"
    assert tokens[0].hot_level == 3
    assert "User-Agent" in factory.requests[0][1]

    client, _ = _client(FakeResponse(200, {"code": 1, "data": None}))
    with pytest.raises(TransportError):
        await client.get_gmgn_hot_tokens()


async def test_twitter_profile():
    payload = {"success": True, "followerCount": 1200, "bottomOdos": [345, 10]}
    client, _ = _client(FakeResponse(200, payload))
    profile = await client.get_twitter_profile("someone")
    assert (profile.followers, profile.tweets) == (1200, 345)

    client, _ = _client(FakeResponse(200, {"success": False, "message": "not found"}))
    with pytest.raises(TransportError, match="not found"):
        await client.get_twitter_profile("nobody")
