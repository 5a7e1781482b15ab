"""
Minting gate: the precondition chain in front of the external mint call.

Checks run in a fixed order and the first failure wins:
wallet linked -> known achievement -> earned -> not yet minted -> backend configured.
The minted set only grows after the collaborator reports success.
"""
from dataclasses import dataclass
import logging

from calix.logic import achievements
from calix.logic.errors import (
    AlreadyMinted,
    MintingUnavailable,
    NotEarned,
    UnknownAchievement,
    WalletNotLinked,
)
from calix.logic.reconcile import compute_derived, stored_minted

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class MintResult:
    achievement_id: str
    transaction: str


class MintGate:
    def __init__(self, store, mint_client=None):
        self.store = store
        self.mint_client = mint_client

    def mint(self, identity: str, achievement_id: str) -> MintResult:
        record = self.store.find_one(identity) or {}

        wallet_address = record.get('walletAddress')
        if not wallet_address:
            raise WalletNotLinked("Link a wallet before minting achievements.")

        achievement = achievements.get_achievement(achievement_id)
        if achievement is None:
            raise UnknownAchievement(f"Unknown achievement '{achievement_id}'.")

        if achievement_id not in compute_derived(record).earned:
            raise NotEarned(f"Achievement '{achievement_id}' has not been earned yet.")

        if achievement_id in stored_minted(record):
            raise AlreadyMinted(f"Achievement '{achievement_id}' has already been minted.")

        if self.mint_client is None:
            raise MintingUnavailable("Minting is not configured on this server.")

        logger.info(f"Minting '{achievement_id}' for {identity[:8]} to {wallet_address[:6]}...")
        transaction = self.mint_client.mint(wallet_address, achievement.model_dump())
        self.store.add_minted(identity, achievement_id)
        logger.info(f"Minted '{achievement_id}' for {identity[:8]}: {transaction}")
        return MintResult(achievement_id=achievement_id, transaction=transaction)
