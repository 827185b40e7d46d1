# feedbackledger/config.py
"""
Runtime settings, read from environment variables.

CLI flags take precedence over the environment, which takes precedence
over the defaults below.
"""

import os
from dataclasses import dataclass, replace
from pathlib import Path
from typing import Optional

from feedbackledger.core.types import INDEX_KEY
from feedbackledger.crypto.envelope import AESGCMEncryptor, Encryptor, SimulatedFHEEncryptor
from feedbackledger.store.index import DEFAULT_MAX_RETRIES
from feedbackledger.storage.transport import DEFAULT_TIMEOUT

DEFAULT_HOME = Path.home() / ".feedbackledger"


def _env_int(name: str, default: int) -> int:
    raw = os.environ.get(name)
    if raw is None or raw.strip() == "":
        return default
    try:
        return int(raw)
    except ValueError:
        raise ValueError(f"{name} must be an integer, got '{raw}'") from None


def _env_float(name: str, default: float) -> float:
    raw = os.environ.get(name)
    if raw is None or raw.strip() == "":
        return default
    try:
        return float(raw)
    except ValueError:
        raise ValueError(f"{name} must be a number, got '{raw}'") from None


@dataclass(frozen=True)
class Settings:
    db_path: Path = DEFAULT_HOME / "feedback-ledger.db"
    index_key: str = INDEX_KEY
    index_retries: int = DEFAULT_MAX_RETRIES
    timeout: float = DEFAULT_TIMEOUT
    key_file: Path = DEFAULT_HOME / "signer.key"
    aes_key: Optional[str] = None

    @classmethod
    def from_env(cls) -> "Settings":
        db_path = os.environ.get("FEEDBACK_LEDGER_DB_PATH")
        key_file = os.environ.get("FEEDBACK_LEDGER_KEY_FILE")
        settings = cls(
            db_path=Path(db_path).expanduser() if db_path else cls.db_path,
            index_key=os.environ.get("FEEDBACK_LEDGER_INDEX_KEY") or INDEX_KEY,
            index_retries=_env_int("FEEDBACK_LEDGER_INDEX_RETRIES", DEFAULT_MAX_RETRIES),
            timeout=_env_float("FEEDBACK_LEDGER_TIMEOUT", DEFAULT_TIMEOUT),
            key_file=Path(key_file).expanduser() if key_file else cls.key_file,
            aes_key=os.environ.get("FEEDBACK_LEDGER_AES_KEY") or None,
        )
        if settings.index_retries < 0:
            raise ValueError("FEEDBACK_LEDGER_INDEX_RETRIES must be >= 0")
        if settings.timeout <= 0:
            raise ValueError("FEEDBACK_LEDGER_TIMEOUT must be > 0")
        return settings

    def with_overrides(self, **changes) -> "Settings":
        return replace(self, **{k: v for k, v in changes.items() if v is not None})

    def encryptor(self) -> Encryptor:
        if self.aes_key:
            return AESGCMEncryptor.from_b64url(self.aes_key)
        return SimulatedFHEEncryptor()
