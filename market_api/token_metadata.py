from dataclasses import dataclass
from typing import Union

from construct import ConstructError, Int8ul, Int16ul, Int32ul, PascalString, Struct
from solana.rpc.async_api import AsyncClient
from solana.rpc.commitment import Commitment, Confirmed
from solders.pubkey import Pubkey

from errors import AccountNotFoundError, DecodeError
from raydium_lib.layouts import PUBKEY
from utils import get_logger

METADATA_PROGRAM = Pubkey.from_string("metaqbxxUerdq28cj1RbAWkYQm3ybzjb6a8bt518x1s")
METADATA_SEED = b"metadata"

#leading part of the metaplex metadata account, creators and collection data follow
METADATA_LAYOUT = Struct(
    "key" / Int8ul,
    "update_authority" / PUBKEY,
    "mint" / PUBKEY,
    "name" / PascalString(Int32ul, "utf8"),
    "symbol" / PascalString(Int32ul, "utf8"),
    "uri" / PascalString(Int32ul, "utf8"),
    "seller_fee_basis_points" / Int16ul,
)


@dataclass(frozen=True)
class TokenMetadata:
    mint: Pubkey
    update_authority: Pubkey
    name: str
    symbol: str
    uri: str
    seller_fee_basis_points: int


def get_metadata_address(mint: Pubkey) -> Pubkey:
    address, _ = Pubkey.find_program_address(
        [METADATA_SEED, bytes(METADATA_PROGRAM), bytes(mint)],
        METADATA_PROGRAM,
    )
    return address


def decode_token_metadata(data: bytes) -> TokenMetadata:
    try:
        parsed = METADATA_LAYOUT.parse(data)
    except (ConstructError, UnicodeDecodeError) as e:
        raise DecodeError(f"Failed to decode token metadata: {e}") from e

    # name, symbol and uri are stored zero padded to a fixed size
    return TokenMetadata(
        mint=Pubkey.from_bytes(parsed.mint),
        update_authority=Pubkey.from_bytes(parsed.update_authority),
        name=parsed.name.rstrip("\x00"),
        symbol=parsed.symbol.rstrip("\x00"),
        uri=parsed.uri.rstrip("\x00"),
        seller_fee_basis_points=parsed.seller_fee_basis_points,
    )


class TokenMetadataClient:
    """Reads metaplex token metadata (name, symbol, uri) straight from the chain."""

    def __init__(self, client: AsyncClient, commitment: Commitment = Confirmed):
        self.logger = get_logger("METADATA")
        self.client = client
        self.commitment = commitment

    async def get_token_metadata(self, mint: Union[str, Pubkey]) -> TokenMetadata:
        if isinstance(mint, str):
            mint = Pubkey.from_string(mint)
        address = get_metadata_address(mint)
        resp = await self.client.get_account_info(address, commitment=self.commitment)
        if resp.value is None:
            raise AccountNotFoundError(f"Metadata account {address} for mint {mint} not found")

        metadata = decode_token_metadata(bytes(resp.value.data))
        self.logger.debug(f"Token metadata {mint} | {metadata.symbol} | {metadata.name}")
        return metadata
