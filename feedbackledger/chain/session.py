# feedbackledger/chain/session.py
from dataclasses import dataclass
from typing import Callable, Optional

from feedbackledger.core.errors import NoSignerError, SigningRejectedError
from feedbackledger.core.types import Proof
from feedbackledger.crypto.keys import SignerKey

# (key, value) -> True to sign, False to refuse. Models the wallet confirmation prompt.
ApprovalHook = Callable[[str, bytes], bool]


@dataclass
class WalletSession:
    """
    The active wallet: who is writing and whether writes can be signed.
    An empty session (no signer) can still read through ReadOnlyLedger.
    """
    signer: Optional[SignerKey] = None
    approve: Optional[ApprovalHook] = None

    @property
    def account(self) -> str:
        """Current identity, or "" when no wallet is connected."""
        return self.signer.account if self.signer else ""

    @property
    def can_sign(self) -> bool:
        return self.signer is not None and self.signer.can_sign

    def connect(self, signer: SignerKey) -> None:
        self.signer = signer

    def disconnect(self) -> None:
        self.signer = None

    def sign(self, key: str, value: bytes) -> Proof:
        if not self.can_sign:
            raise NoSignerError("No active signer session; connect a wallet first")
        if self.approve is not None and not self.approve(key, value):
            raise SigningRejectedError(f"Wallet rejected signing the write to '{key}'")
        return self.signer.sign_write(key, value)
