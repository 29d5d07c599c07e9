"""
Application configuration loaded from the environment (and `.env`).
"""

from __future__ import annotations

import logging
import os
from pathlib import Path
from typing import Optional

from dotenv import load_dotenv
from pydantic import BaseModel, Field


class Settings(BaseModel):
    mongo_uri: Optional[str] = None
    mongo_db: str = "credit_management"
    jwt_secret: str = ""
    jwt_algorithm: str = "HS256"
    jwt_audience: Optional[str] = "authenticated"
    ledger_log_path: Path = Path("logs/credit_ledger.log")
    transfer_expiry_days: int = Field(default=7, gt=0)
    log_level: str = "INFO"

    @classmethod
    def from_env(cls, env_file: Optional[Path] = None) -> "Settings":
        load_dotenv(env_file or Path.cwd() / ".env")
        return cls(
            mongo_uri=os.getenv("CREDIT_MONGO_URI") or None,
            mongo_db=os.getenv("CREDIT_MONGO_DB", "credit_management"),
            jwt_secret=os.getenv("CREDIT_JWT_SECRET", ""),
            jwt_algorithm=os.getenv("CREDIT_JWT_ALGORITHM", "HS256"),
            jwt_audience=os.getenv("CREDIT_JWT_AUDIENCE", "authenticated") or None,
            ledger_log_path=Path(
                os.getenv("CREDIT_LEDGER_LOG_PATH", "logs/credit_ledger.log")
            ),
            transfer_expiry_days=int(os.getenv("CREDIT_TRANSFER_EXPIRY_DAYS", "7")),
            log_level=os.getenv("LOG_LEVEL", "INFO"),
        )


def setup_logging(level: str = "INFO") -> None:
    logging.basicConfig(
        level=getattr(logging, level.upper(), logging.INFO),
        format="%(asctime)s [%(levelname)s] [%(name)s] %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
    )
