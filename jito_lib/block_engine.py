from typing import AsyncIterator, List, Optional, Sequence, Tuple

from jito_searcher_client.convert import versioned_tx_to_protobuf_packet
from jito_searcher_client.generated.bundle_pb2 import Bundle
from jito_searcher_client.generated.searcher_pb2 import (
    GetTipAccountsRequest,
    NextScheduledLeaderRequest,
    SendBundleRequest,
    SubscribeBundleResultsRequest,
)
from jito_searcher_client.searcher import get_async_searcher_client
from solders.keypair import Keypair
from solders.transaction import VersionedTransaction

from utils import get_logger
from .bundle_sender import BundleResult


def _rejected_reason(rejected) -> str:
    reason = rejected.WhichOneof("reason")
    if reason is None:
        return ""
    return getattr(rejected, reason).msg


def to_bundle_result(result) -> BundleResult:
    kind = result.WhichOneof("result")
    if kind == "rejected":
        return BundleResult(result.bundle_id, rejected_reason=_rejected_reason(result.rejected))
    return BundleResult(result.bundle_id, accepted=kind == "accepted")


class BlockEngineClient:
    """Jito searcher gRPC service behind the plain bundle relay calls BundleSender uses."""

    def __init__(self, stub):
        self.logger = get_logger("BLOCK_ENGINE")
        self.stub = stub

    @classmethod
    async def create(cls, url: str, auth_keypair: Optional[Keypair] = None):
        stub = await get_async_searcher_client(url, auth_keypair)
        return cls(stub)

    async def get_tip_accounts(self) -> List[str]:
        resp = await self.stub.GetTipAccounts(GetTipAccountsRequest())
        return list(resp.accounts)

    async def get_next_scheduled_leader(self) -> Tuple[int, int]:
        resp = await self.stub.GetNextScheduledLeader(NextScheduledLeaderRequest())
        self.logger.trace(f"Next jito leader: {resp.next_leader_identity} at {resp.next_leader_slot} | current: {resp.current_slot}")
        return resp.current_slot, resp.next_leader_slot

    async def send_bundle(self, transactions: Sequence[VersionedTransaction]) -> str:
        packets = [versioned_tx_to_protobuf_packet(tx) for tx in transactions]
        resp = await self.stub.SendBundle(SendBundleRequest(bundle=Bundle(header=None, packets=packets)))
        return resp.uuid

    async def subscribe_bundle_results(self) -> AsyncIterator[BundleResult]:
        async for result in self.stub.SubscribeBundleResults(SubscribeBundleResultsRequest()):
            yield to_bundle_result(result)
