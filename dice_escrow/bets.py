"""
Bet records: one account per (vault, seed).

Account data is an 8-byte record header followed by the ARC-4 encoding of
``(address,uint128,uint64,uint64,uint8)`` = (player, seed, created_at,
amount, roll). The encoded tuple without the header is the message a player
signs to resolve the bet.

A record's existence is its state: once closed it is gone, so it can never
be refunded or resolved a second time.
"""
import logging
from dataclasses import dataclass
from typing import Callable, List, Tuple

from algosdk import abi, encoding

from .addresses import PROGRAM_ID, bet_address
from .config import MAX_ROLL, MIN_ROLL, U64_MAX, U128_MAX
from .errors import (
    AccountAlreadyExists,
    BetNotFound,
    DuplicateSeed,
    InvalidAmount,
    InvalidRoll,
    VaultUndercapitalized,
)
from .ledger import Ledger
from .vault import VaultLedger

log = logging.getLogger(__name__)

BET_CODEC = abi.ABIType.from_string("(address,uint128,uint64,uint64,uint8)")
BET_HEADER = encoding.checksum(b"record:Bet")[:8]
BET_MESSAGE_SIZE = BET_CODEC.byte_len()  # 65


@dataclass(frozen=True)
class BetRecord:
    player: str
    seed: int
    created_at: int
    amount: int
    roll: int

    def to_message(self) -> bytes:
        return BET_CODEC.encode([self.player, self.seed, self.created_at, self.amount, self.roll])

    def to_account_data(self) -> bytes:
        return BET_HEADER + self.to_message()

    @classmethod
    def from_message(cls, message: bytes) -> "BetRecord":
        player, seed, created_at, amount, roll = BET_CODEC.decode(message)
        return cls(player, seed, created_at, amount, roll)

    @classmethod
    def from_account_data(cls, data: bytes) -> "BetRecord":
        if len(data) != len(BET_HEADER) + BET_MESSAGE_SIZE or data[:len(BET_HEADER)] != BET_HEADER:
            raise ValueError("not a bet record")
        return cls.from_message(data[len(BET_HEADER):])


def validate_bet(seed: int, roll: int, amount: int) -> None:
    if not MIN_ROLL <= roll <= MAX_ROLL:
        raise InvalidRoll(f"roll must be in [{MIN_ROLL}, {MAX_ROLL}], got {roll}")
    if not 0 < amount <= U64_MAX:
        raise InvalidAmount(f"bet amount must be positive, got {amount}")
    if not 0 <= seed <= U128_MAX:
        raise InvalidAmount(f"seed must fit in u128, got {seed}")


class BetStore:
    """Creates, loads and closes bet records.

    `liability` maps a record to the amount the vault owes if it wins; the
    store uses it to keep every vault solvent against its open bets.
    """

    def __init__(
        self,
        ledger: Ledger,
        vaults: VaultLedger,
        liability: Callable[[BetRecord], int],
        program_id: str = PROGRAM_ID,
    ):
        self.ledger = ledger
        self.vaults = vaults
        self.liability = liability
        self.program_id = program_id

    def address_for(self, vault: str, seed: int) -> str:
        return bet_address(vault, seed, self.program_id)

    def load(self, address: str) -> BetRecord:
        acct = self.ledger.get(address)
        if acct is None or acct.owner != self.program_id:
            raise BetNotFound(f"no bet at {address}")
        try:
            return BetRecord.from_account_data(acct.data)
        except ValueError:
            raise BetNotFound(f"account {address} is not a bet record")

    def outstanding(self, vault: str) -> List[Tuple[str, BetRecord]]:
        open_bets = []
        for address, acct in self.ledger.program_accounts(self.program_id):
            if not acct.data.startswith(BET_HEADER):
                continue
            record = BetRecord.from_account_data(acct.data)
            if self.address_for(vault, record.seed) == address:
                open_bets.append((address, record))
        return open_bets

    def exposure(self, vault: str) -> int:
        return sum(self.liability(record) for _, record in self.outstanding(vault))

    def create(self, player: str, vault: str, seed: int, roll: int, amount: int) -> str:
        validate_bet(seed, roll, amount)
        if not self.vaults.exists(vault):
            raise VaultUndercapitalized(f"vault {vault} has not been initialized")
        address = self.address_for(vault, seed)
        if self.ledger.exists(address):
            raise DuplicateSeed(f"bet with seed {seed} already open at {address}")

        record = BetRecord(player=player, seed=seed, created_at=self.ledger.round, amount=amount, roll=roll)
        owed = self.liability(record)
        free = self.vaults.balance(vault) - self.exposure(vault)
        if free < owed:
            raise VaultUndercapitalized(f"vault {vault} has {free} uncommitted, bet needs {owed}")

        self.vaults.credit(vault, amount, source=player)
        try:
            deposit = self.ledger.create_account(player, address, record.to_account_data(), self.program_id)
        except AccountAlreadyExists:
            raise DuplicateSeed(address)
        log.info("bet %s opened: player=%s roll=%d amount=%d deposit=%d", address, player, roll, amount, deposit)
        return address

    def close(self, address: str, destination: str) -> int:
        self.load(address)
        returned = self.ledger.close_account(address, destination)
        log.debug("bet %s closed, %d returned to %s", address, returned, destination)
        return returned
