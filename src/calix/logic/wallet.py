"""
Wallet linking: detached Ed25519 signature verification over a challenge message.

Public keys and signatures arrive base58-encoded, as Solana wallets produce them.
"""
import logging

import base58
from cryptography.exceptions import InvalidSignature as BadSignature
from cryptography.hazmat.primitives.asymmetric import ed25519

from calix.logic.errors import InvalidSignature, InvalidSignatureLength, ValidationFailure
from calix.logic.models import WalletLinkRequest

logger = logging.getLogger(__name__)

SIGNATURE_SIZE = 64
PUBLIC_KEY_SIZE = 32


def _b58decode(value: str, what: str) -> bytes:
    try:
        return base58.b58decode(value)
    except ValueError as exc:
        raise ValidationFailure(f"{what} is not valid base58.") from exc


def decode_public_key(public_key: str) -> bytes:
    raw = _b58decode(public_key, "Public key")
    if len(raw) != PUBLIC_KEY_SIZE:
        raise ValidationFailure("Public key has the wrong length.")
    return raw


def decode_signature(signature: str) -> bytes:
    raw = _b58decode(signature, "Signature")
    if len(raw) != SIGNATURE_SIZE:
        raise InvalidSignatureLength(f"Signature must be {SIGNATURE_SIZE} bytes, got {len(raw)}.")
    return raw


def verify(public_key: str, message: str, signature: bytes) -> bool:
    """
    Check a detached signature over the UTF-8 bytes of ``message``.

    Raises ValidationFailure for missing inputs or a malformed key and
    InvalidSignatureLength before any verification is attempted.
    """
    if not public_key or not message or not signature:
        raise ValidationFailure("publicKey, message and signature are required.")
    if len(signature) != SIGNATURE_SIZE:
        raise InvalidSignatureLength(f"Signature must be {SIGNATURE_SIZE} bytes, got {len(signature)}.")
    try:
        key = ed25519.Ed25519PublicKey.from_public_bytes(decode_public_key(public_key))
    except ValueError as exc:
        raise ValidationFailure("Public key is not a valid Ed25519 key.") from exc
    try:
        key.verify(signature, message.encode("utf-8"))
    except BadSignature:
        return False
    return True


def link_wallet(store, identity: str, request: WalletLinkRequest) -> str:
    """Verify the request and record the wallet for this identity, replacing any previous one."""
    signature = decode_signature(request.signature)
    if not verify(request.publicKey, request.message, signature):
        logger.info(f"Rejected wallet link for {identity[:8]}: signature did not verify")
        raise InvalidSignature("Signature verification failed.")
    store.upsert(identity, {"walletAddress": request.publicKey})
    logger.info(f"Linked wallet {request.publicKey[:6]}... for {identity[:8]}")
    return request.publicKey


def unlink_wallet(store, identity: str) -> None:
    store.remove_field(identity, "walletAddress")
    logger.info(f"Disconnected wallet for {identity[:8]}")
