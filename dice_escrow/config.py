# dice_escrow/config.py
# Protocol constants and LocalNet settings, overridable from the environment.
import os
from dataclasses import dataclass

# -------- Protocol --------
HOUSE_FEE_BPS = int(os.getenv("DICE_HOUSE_FEE_BPS", "150"))      # 1.5%
BPS_DENOMINATOR = 10_000
REFUND_TIMEOUT = int(os.getenv("DICE_REFUND_TIMEOUT", "1000"))   # rounds
PAYOUT_POLICY = os.getenv("DICE_PAYOUT_POLICY", "flat")         # flat | scaled
PAYOUT_POLICIES = ("flat", "scaled")

MIN_ROLL = 1
MAX_ROLL = 99
U64_MAX = 2**64 - 1
U128_MAX = 2**128 - 1

# -------- Storage deposit (box-style minimum balance pricing) --------
BASE_MIN_BALANCE = 2500
BYTE_MIN_BALANCE = 400
ACCOUNT_KEY_BYTES = 32

# -------- LocalNet --------
ALGOD_ADDR = os.getenv("ALGOD_LOCAL", "http://localhost:4001")
ALGOD_TOKEN = os.getenv("ALGOD_LOCAL_TOKEN", "a" * 64)
KMD_ADDR = os.getenv("KMD_LOCAL", "http://localhost:4002")
KMD_TOKEN = os.getenv("KMD_LOCAL_TOKEN", ALGOD_TOKEN)  # usually same in sandbox
INDEXER_ADDR = os.getenv("INDEXER_LOCAL", "http://localhost:8980")


class ConfigError(ValueError):
    """Raised when protocol settings are out of range."""


@dataclass(frozen=True)
class ProtocolConfig:
    fee_bps: int = HOUSE_FEE_BPS
    refund_timeout: int = REFUND_TIMEOUT
    payout_policy: str = PAYOUT_POLICY

    def validate(self) -> "ProtocolConfig":
        if not 0 <= self.fee_bps < BPS_DENOMINATOR:
            raise ConfigError(f"fee_bps must be in [0, {BPS_DENOMINATOR}), got {self.fee_bps}")
        if self.refund_timeout < 0:
            raise ConfigError(f"refund_timeout must be >= 0, got {self.refund_timeout}")
        if self.payout_policy not in PAYOUT_POLICIES:
            raise ConfigError(f"payout_policy must be one of {PAYOUT_POLICIES}, got {self.payout_policy!r}")
        return self

    @classmethod
    def from_env(cls) -> "ProtocolConfig":
        return cls(
            fee_bps=int(os.getenv("DICE_HOUSE_FEE_BPS", str(HOUSE_FEE_BPS))),
            refund_timeout=int(os.getenv("DICE_REFUND_TIMEOUT", str(REFUND_TIMEOUT))),
            payout_policy=os.getenv("DICE_PAYOUT_POLICY", PAYOUT_POLICY),
        ).validate()
