from .market_api import GmgnHotToken, JupToken, JupTokenMap, MarketApiClient, TwitterProfile
from .token_metadata import TokenMetadata, TokenMetadataClient

__all__ = [
    'GmgnHotToken',
    'JupToken',
    'JupTokenMap',
    'MarketApiClient',
    'TokenMetadata',
    'TokenMetadataClient',
    'TwitterProfile',
]
