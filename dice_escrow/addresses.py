# dice_escrow/addresses.py
# Deterministic program-derived addresses.
import logging
from typing import Tuple, Union

from algosdk import encoding
from nacl.bindings import crypto_core_ed25519_is_valid_point

from .errors import NoValidAddress

log = logging.getLogger(__name__)

PDA_MARKER = b"ProgramDerivedAddress"
MAX_SEED_LEN = 32
MAX_SEEDS = 16

VAULT_TAG = b"vault"
BET_TAG = b"bet"

# Fixed identities of the two programs the ledger knows about
PROGRAM_ID = encoding.encode_address(encoding.checksum(b"dice-escrow/program"))
ED25519_PROGRAM_ID = encoding.encode_address(encoding.checksum(b"Ed25519SigVerify"))

AddressLike = Union[str, bytes]


def to_bytes(address: AddressLike) -> bytes:
    if isinstance(address, (bytes, bytearray)):
        if len(address) != 32:
            raise ValueError(f"raw address must be 32 bytes, got {len(address)}")
        return bytes(address)
    return encoding.decode_address(address)


def to_address(raw: AddressLike) -> str:
    if isinstance(raw, str):
        return raw
    return encoding.encode_address(bytes(raw))


def is_on_curve(raw: bytes) -> bool:
    return crypto_core_ed25519_is_valid_point(raw)


def create_program_address(seeds, program_id: AddressLike) -> str:
    """Hash seeds into an address; fails if the digest lands on the curve (it could have a private key)."""
    if len(seeds) > MAX_SEEDS or any(len(s) > MAX_SEED_LEN for s in seeds):
        raise NoValidAddress("seed material too long")
    digest = encoding.checksum(b"".join(seeds) + to_bytes(program_id) + PDA_MARKER)
    if is_on_curve(digest):
        raise NoValidAddress("derived address is on the ed25519 curve")
    return encoding.encode_address(digest)


def find_program_address(seeds, program_id: AddressLike = PROGRAM_ID) -> Tuple[str, int]:
    for bump in range(255, -1, -1):
        try:
            address = create_program_address(list(seeds) + [bytes([bump])], program_id)
        except NoValidAddress:
            continue
        return address, bump
    raise NoValidAddress("no bump seed yields an off-curve address")


def vault_address(house: AddressLike, program_id: AddressLike = PROGRAM_ID) -> str:
    address, _ = find_program_address([VAULT_TAG, to_bytes(house)], program_id)
    log.debug("vault for %s -> %s", to_address(house), address)
    return address


def bet_address(vault: AddressLike, seed: int, program_id: AddressLike = PROGRAM_ID) -> str:
    address, _ = find_program_address(
        [BET_TAG, to_bytes(vault), seed.to_bytes(16, "little")], program_id
    )
    return address
