# dice_escrow/payout.py
# Outcome derivation and fee/payout arithmetic. Integer-only; every division floors.
import hashlib

from .config import BPS_DENOMINATOR, HOUSE_FEE_BPS, PAYOUT_POLICY, U64_MAX
from .errors import Overflow

ROLL_SIDES = 100
_U128 = 2**128


def roll_from_signature(signature: bytes) -> int:
    """Map a signature to [0, 99]: sum of the two big-endian halves of sha256(sig), mod 2^128, mod 100."""
    digest = hashlib.sha256(signature).digest()
    lower = int.from_bytes(digest[:16], "big")
    upper = int.from_bytes(digest[16:], "big")
    return ((lower + upper) % _U128) % ROLL_SIDES


def is_win(outcome: int, roll: int) -> bool:
    return outcome < roll


def win_payout(amount: int, roll: int, fee_bps: int = HOUSE_FEE_BPS, policy: str = PAYOUT_POLICY) -> int:
    """What the vault pays the player on a win.

    flat:   amount * (10000 - fee) / 10000
    scaled: amount * (100 / roll) * (10000 - fee) / 10000
    """
    keep = BPS_DENOMINATOR - fee_bps
    if policy == "flat":
        payout = amount * keep // BPS_DENOMINATOR
    elif policy == "scaled":
        payout = amount * ROLL_SIDES * keep // (roll * BPS_DENOMINATOR)
    else:
        raise ValueError(f"unknown payout policy {policy!r}")
    if payout > U64_MAX:
        raise Overflow(f"payout {payout} does not fit in u64")
    return payout
