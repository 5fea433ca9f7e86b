import asyncio
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, List, Literal

import ujson
from curl_cffi.requests import AsyncSession

from config import ERROR_429_DELAY, ERROR_429_RETRIES
from errors import TransportError
from utils import get_logger

USER_AGENT = 'Mozilla/5.0 (Macintosh; Intel Mac OS X 10_15_7) AppleWebKit/537.36 (KHTML, like Gecko) Chrome/123.0.0.0 Safari/537.36'

GMGN_HOT_TOKENS_URL = 'https://gmgn.ai/defi/quotation/v1/rank/sol/swaps/1h?orderby=swaps&direction=desc'
JUP_TOKEN_LIST_URL = 'https://token.jup.ag/{kind}'
TWITTER_STATS_URL = 'https://api.livecounts.io/twitter-live-follower-counter/stats/{username}'


@dataclass
class GmgnHotToken:
    address: str
    symbol: str
    hot_level: int


@dataclass
class JupToken:
    address: str
    symbol: str
    name: str = ''
    decimals: int = 0
    chain_id: int = 101
    logo_uri: str = ''
    tags: List[str] = field(default_factory=list)
    extensions: Dict[str, Any] = field(default_factory=dict)

    @classmethod
    def from_dict(cls, data: dict):
        return cls(
            address=data['address'],
            symbol=data.get('symbol', ''),
            name=data.get('name', ''),
            decimals=data.get('decimals', 0),
            chain_id=data.get('chainId', 101),
            logo_uri=data.get('logoURI') or '',
            tags=data.get('tags') or [],
            extensions=data.get('extensions') or {},
        )


@dataclass
class JupTokenMap:
    address_map: Dict[str, JupToken]
    symbol_map: Dict[str, List[JupToken]]


@dataclass
class TwitterProfile:
    followers: int
    tweets: int


class MarketApiClient:
    """
    Off-chain token signals for the strategy layer: gmgn popularity rank, jupiter
    token lists and twitter follower counts. Nothing in the swap path depends on it.
    """

    def __init__(
        self,
        session_factory: Callable[[], AsyncSession] = AsyncSession,
        retries_429: int = ERROR_429_RETRIES,
        delay_429: float = ERROR_429_DELAY,
    ):
        self.logger = get_logger("MARKET_API")
        self.session_factory = session_factory
        self.retries_429 = retries_429
        self.delay_429 = delay_429

    async def _get_json(self, url: str, headers: dict = None) -> Any:
        for i in range(self.retries_429):
            async with self.session_factory() as session:
                try:
                    resp = await session.get(url, headers=headers)
                except Exception as e:
                    raise TransportError(f"Request to {url} failed: {e}") from e

                if resp.status_code == 429:
                    self.logger.warning(f"[{i+1}/{self.retries_429} retries] Rate limit exceeded for {url}, waiting {self.delay_429} seconds")
                    await asyncio.sleep(self.delay_429)
                    continue

                try:
                    resp.raise_for_status()
                    return ujson.loads(resp.text)
                except Exception as e:
                    raise TransportError(f"Bad response from {url}: {e}") from e

        raise TransportError(f"Rate limit retries exhausted for {url}")

    async def get_gmgn_hot_tokens(self) -> List[GmgnHotToken]:
        data = await self._get_json(GMGN_HOT_TOKENS_URL, headers={'User-Agent': USER_AGENT}) or {}
        rank = (data.get('data') or {}).get('rank') or []
        if data.get('code') != 0 or not rank:
            raise TransportError("Failed to get gmgn hot tokens")

        return [
            GmgnHotToken(address=token['address'], symbol=token.get('symbol', ''), hot_level=token.get('hot_level', 0))
            for token in rank
        ]

    async def get_jup_token_list(self, kind: Literal['strict', 'all'] = 'strict') -> List[JupToken]:
        data = await self._get_json(JUP_TOKEN_LIST_URL.format(kind=kind))
        if not isinstance(data, list) or not data:
            raise TransportError("Failed to get token list")
        return [JupToken.from_dict(token) for token in data]

    async def get_jup_token_map(self, kind: Literal['strict', 'all'] = 'strict') -> JupTokenMap:
        address_map: Dict[str, JupToken] = {}
        symbol_map: Dict[str, List[JupToken]] = {}
        for token in await self.get_jup_token_list(kind):
            address_map[token.address] = token
            symbol_map.setdefault(token.symbol, []).append(token)
        return JupTokenMap(address_map=address_map, symbol_map=symbol_map)

    async def get_twitter_profile(self, username: str) -> TwitterProfile:
        data = await self._get_json(
            TWITTER_STATS_URL.format(username=username),
            headers={'Origin': 'https://livecounts.io', 'User-Agent': USER_AGENT},
        )
        if not data.get('success'):
            raise TransportError(f"Failed to get twitter followers: {data.get('message')}")

        counters = data.get('bottomOdos') or [0]
        return TwitterProfile(followers=data.get('followerCount', 0), tweets=counters[0])
