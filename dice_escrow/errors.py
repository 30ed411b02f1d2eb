# dice_escrow/errors.py
# Error taxonomy. Codes follow the custom-error numbering used by on-chain programs (6000+).


class DiceError(Exception):
    """Base class for every protocol failure. A raised error means no state changed."""

    code = 6000

    def __init__(self, message: str = ""):
        super().__init__(message or self.__class__.__name__)


class InvalidAmount(DiceError):
    code = 6001


class InvalidRoll(DiceError):
    code = 6002


class AlreadyInitialized(DiceError):
    code = 6003


class InsufficientFunds(DiceError):
    code = 6004


class VaultUndercapitalized(DiceError):
    code = 6005


class DuplicateSeed(DiceError):
    code = 6006


class TimeoutNotReached(DiceError):
    code = 6007


class MissingOrInvalidSignatureProof(DiceError):
    """The companion Ed25519 instruction is absent or does not attest the expected message."""

    code = 6008

    def __init__(self, reason: str, message: str = ""):
        self.reason = reason
        super().__init__(message or f"signature proof rejected: {reason}")


class BetNotFound(DiceError):
    code = 6009


AlreadyClosed = BetNotFound


class Unauthorized(DiceError):
    code = 6010


class Overflow(DiceError):
    code = 6011


class InvalidDerivedAddress(Unauthorized):
    """An account does not sit at the address its seeds derive to."""

    code = 6012


class NoValidAddress(DiceError):
    code = 6013


class UnknownMethod(DiceError):
    code = 6014


class AccountAlreadyExists(DiceError):
    code = 6015
