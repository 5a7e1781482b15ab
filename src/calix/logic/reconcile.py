"""
Read-path reconciliation of derived achievement state.

Split in two phases so the decision to persist is visible on its own:
``compute_derived`` is pure, ``reconcile`` only describes the write it needs.
``load_and_reconcile`` runs both against a store and applies the write, failing
the whole read if that write fails.
"""
from dataclasses import dataclass
from typing import Any, Dict, FrozenSet, List, Mapping, Optional, Tuple
import logging

from calix.logic import achievements
from calix.logic.models import DataResponse
from calix.logic.store import EARNED_FIELD, MINTED_FIELD

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class DerivedView:
    earned: FrozenSet[str]


@dataclass(frozen=True)
class WriteIntent:
    earned: Tuple[str, ...]
    minted: Tuple[str, ...]
    pruned: Tuple[str, ...] = ()
    backfill: bool = False


def compute_derived(record: Optional[Mapping[str, Any]]) -> DerivedView:
    record = record or {}
    earned = achievements.compute(record.get('diet'), record.get('activity'), record.get('goals'))
    return DerivedView(earned=earned)


def stored_minted(record: Optional[Mapping[str, Any]]) -> List[str]:
    minted = (record or {}).get(MINTED_FIELD)
    if not isinstance(minted, list):
        return []
    # Stored lists may carry duplicates from older writes.
    return list(dict.fromkeys(minted))


def pruned_minted(record: Optional[Mapping[str, Any]], derived: DerivedView) -> List[str]:
    return [a for a in stored_minted(record) if a in derived.earned]


def reconcile(record: Optional[Mapping[str, Any]], derived: DerivedView) -> Optional[WriteIntent]:
    """
    Decide whether the stored snapshot must be rewritten.

    A write is needed when a minted entry is no longer earned, or when the
    record has never had its achievement fields written.
    """
    record = record or {}
    current = stored_minted(record)
    kept = [a for a in current if a in derived.earned]
    removed = tuple(a for a in current if a not in derived.earned)
    backfill = EARNED_FIELD not in record or MINTED_FIELD not in record

    if not removed and not backfill:
        return None
    return WriteIntent(
        earned=tuple(achievements.ordered(derived.earned)),
        minted=tuple(kept),
        pruned=removed,
        backfill=backfill,
    )


def build_response(record: Optional[Mapping[str, Any]], derived: DerivedView) -> DataResponse:
    record = record or {}
    return DataResponse(
        diet=record.get('diet') or {},
        activity=record.get('activity') or {},
        goals=record.get('goals'),
        goalStory=record.get('goalStory') or "",
        walletAddress=record.get('walletAddress'),
        achievementsEarned=achievements.ordered(derived.earned),
        achievementsMinted=achievements.ordered(pruned_minted(record, derived)),
        achievementsMeta=achievements.CATALOG,
    )


def load_and_reconcile(store, identity: str) -> Tuple[Dict[str, Any], DerivedView]:
    """Load the record, recompute achievements, and persist the snapshot if needed."""
    record = store.find_one(identity) or {}
    derived = compute_derived(record)
    intent = reconcile(record, derived)
    if intent is not None:
        store.apply_reconciliation(identity, intent)
        if intent.pruned:
            logger.info(f"Pruned minted achievements no longer earned for {identity[:8]}: {list(intent.pruned)}")
    return record, derived
