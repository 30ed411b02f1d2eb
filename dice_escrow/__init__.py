"""Escrow dice wagering: house-funded vaults, player bets, signature-derived outcomes."""
from .client import DiceClient
from .config import ProtocolConfig
from .errors import (
    AlreadyClosed,
    AlreadyInitialized,
    BetNotFound,
    DiceError,
    DuplicateSeed,
    InsufficientFunds,
    InvalidAmount,
    InvalidRoll,
    MissingOrInvalidSignatureProof,
    TimeoutNotReached,
    Unauthorized,
    VaultUndercapitalized,
)
from .keys import Keypair
from .ledger import Ledger
from .program import DiceProgram
from .resolution import Outcome

__all__ = [
    "DiceClient",
    "DiceProgram",
    "Keypair",
    "Ledger",
    "Outcome",
    "ProtocolConfig",
    "DiceError",
    "InvalidAmount",
    "InvalidRoll",
    "AlreadyInitialized",
    "InsufficientFunds",
    "VaultUndercapitalized",
    "DuplicateSeed",
    "TimeoutNotReached",
    "MissingOrInvalidSignatureProof",
    "BetNotFound",
    "AlreadyClosed",
    "Unauthorized",
]
