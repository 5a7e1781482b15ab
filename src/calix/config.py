import os
from dataclasses import dataclass, field
from typing import List
from dotenv import load_dotenv


def _env_bool(name: str, default: bool = False) -> bool:
    value = os.environ.get(name)
    if value is None:
        return default
    return value.strip().lower() in ("1", "true", "yes", "on")


@dataclass
class Settings:
    mongodb_uri: str = ""
    mongodb_db: str = "calix"
    mongodb_timeout_ms: int = 10000
    mint_api_url: str = ""
    mint_api_key: str = ""
    mint_timeout_seconds: float = 30.0
    cookie_secure: bool = False
    cors_origins: List[str] = field(default_factory=lambda: ["*"])
    log_level: str = "INFO"
    port: int = 3000

    @property
    def use_mongodb(self) -> bool:
        return len(self.mongodb_uri) > 0

    @property
    def use_minting(self) -> bool:
        return len(self.mint_api_url) > 0

    @classmethod
    def from_env(cls) -> "Settings":
        """Build settings from the environment, reading a .env file first if present."""
        load_dotenv()
        origins = os.environ.get("CORS_ORIGINS", "*")
        return cls(
            mongodb_uri=os.environ.get("MONGODB_URI", "").strip(),
            mongodb_db=os.environ.get("MONGODB_DB", "calix"),
            mongodb_timeout_ms=int(os.environ.get("MONGODB_TIMEOUT_MS", "10000")),
            mint_api_url=os.environ.get("MINT_API_URL", "").strip(),
            mint_api_key=os.environ.get("MINT_API_KEY", ""),
            mint_timeout_seconds=float(os.environ.get("MINT_TIMEOUT_SECONDS", "30")),
            cookie_secure=_env_bool("COOKIE_SECURE"),
            cors_origins=[o.strip() for o in origins.split(",") if o.strip()],
            log_level=os.environ.get("LOG_LEVEL", "INFO").upper(),
            port=int(os.environ.get("PORT", "3000")),
        )
