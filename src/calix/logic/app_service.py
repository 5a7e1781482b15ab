from fastapi import APIRouter, Depends, Request
from typing import Any, Dict, List
import logging

from calix.logic.models import (
    Achievement,
    AppData,
    DataResponse,
    MintResponse,
    WalletLinkRequest,
    WalletLinkResponse,
)
from calix.logic.errors import ConfigurationMissing
from calix.logic.identity import resolve_anon_id
from calix.logic.mint_gate import MintGate
from calix.logic.store import UserStore
import calix.logic.achievements as achievements
import calix.logic.reconcile as reconcile
import calix.logic.wallet as wallet

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api")


# --- DEPENDENCIES ---
def get_store(request: Request) -> UserStore:
    store = getattr(request.app.state, "store", None)
    if store is None:
        raise ConfigurationMissing("MongoDB not configured. Set MONGODB_URI in .env to enable sync.")
    return store


def get_mint_gate(request: Request, store: UserStore = Depends(get_store)) -> MintGate:
    return MintGate(store, getattr(request.app.state, "mint_client", None))


# --- API ENDPOINTS ---
@router.get("/health")
def health(request: Request) -> Dict[str, Any]:
    return {
        "ok": True,
        "mongodb": getattr(request.app.state, "store", None) is not None,
        "minting": getattr(request.app.state, "mint_client", None) is not None,
    }


@router.get("/achievements", response_model=List[Achievement])
def list_achievements():
    return achievements.CATALOG


@router.get("/data", response_model=DataResponse)
def get_data(anon_id: str = Depends(resolve_anon_id), store: UserStore = Depends(get_store)):
    """Load this client's data with freshly computed achievements."""
    record, derived = reconcile.load_and_reconcile(store, anon_id)
    return reconcile.build_response(record, derived)


@router.put("/data")
def put_data(payload: AppData, anon_id: str = Depends(resolve_anon_id), store: UserStore = Depends(get_store)):
    """Save diet, activity, goals and goal story as sent. Achievements are recomputed on the next read."""
    store.upsert(anon_id, payload.model_dump())
    logger.info(f"Saved data for {anon_id[:8]} ({len(payload.diet)} diet days, {len(payload.activity)} activity days)")
    return {"ok": True}


@router.post("/wallet/link", response_model=WalletLinkResponse)
def link_wallet(
    body: WalletLinkRequest,
    anon_id: str = Depends(resolve_anon_id),
    store: UserStore = Depends(get_store),
):
    address = wallet.link_wallet(store, anon_id, body)
    return WalletLinkResponse(walletAddress=address)


@router.post("/wallet/disconnect")
def disconnect_wallet(anon_id: str = Depends(resolve_anon_id), store: UserStore = Depends(get_store)):
    wallet.unlink_wallet(store, anon_id)
    return {"ok": True}


@router.post("/achievements/{achievement_id}/mint", response_model=MintResponse)
def mint_achievement(
    achievement_id: str,
    anon_id: str = Depends(resolve_anon_id),
    gate: MintGate = Depends(get_mint_gate),
):
    result = gate.mint(anon_id, achievement_id)
    return MintResponse(achievementId=result.achievement_id, transaction=result.transaction)
