import requests
import logging
from typing import Dict, Optional

from calix.logic.errors import MintFailed

logger = logging.getLogger(__name__)


class MintClient:
    """Client for the external minting backend that issues achievement tokens"""

    def __init__(self, api_url: str, api_key: Optional[str] = None, timeout: float = 30):
        if not api_url:
            raise ValueError("MINT_API_URL is required to create a MintClient.")
        self.api_url = api_url
        self.api_key = api_key
        self.timeout = timeout

    def _headers(self) -> Dict[str, str]:
        headers = {
            "Content-Type": "application/json",
            "Accept": "application/json",
            "X-Title": "Calix Achievements",
        }
        if self.api_key:
            headers["Authorization"] = f"Bearer {self.api_key}"
        return headers

    def mint(self, wallet_address: str, achievement: Dict[str, str]) -> str:
        """
        Mint one achievement token to ``wallet_address``.

        Returns the backend's transaction reference. Any transport error, non-2xx
        status or response without a reference raises MintFailed. No retries.
        """
        payload = {
            "walletAddress": wallet_address,
            "achievement": achievement,
        }

        try:
            response = requests.post(
                self.api_url,
                headers=self._headers(),
                json=payload,
                timeout=self.timeout
            )
            response.raise_for_status()
            data = response.json()
        except requests.exceptions.RequestException as e:
            logger.error(f"Mint request failed: {e}")
            raise MintFailed("Minting backend request failed.") from e
        except ValueError as e:
            logger.error(f"Mint response was not JSON: {e}")
            raise MintFailed("Minting backend returned an invalid response.") from e

        reference = None
        if isinstance(data, dict):
            reference = data.get("signature") or data.get("transaction")
        if not isinstance(reference, str) or not reference:
            raise MintFailed("Minting backend did not return a transaction reference.")
        return reference
