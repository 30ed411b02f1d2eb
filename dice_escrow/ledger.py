# dice_escrow/ledger.py
# In-memory ledger substrate: accounts, deposits, rounds and atomic transactions.
import copy
import logging
import threading
from dataclasses import dataclass
from typing import Dict, Iterator, List, Optional, Tuple

from .addresses import ED25519_PROGRAM_ID
from .config import ACCOUNT_KEY_BYTES, BASE_MIN_BALANCE, BYTE_MIN_BALANCE
from .errors import (
    AccountAlreadyExists,
    InsufficientFunds,
    InvalidAmount,
    Unauthorized,
    UnknownMethod,
)
from .proof import Ed25519Verifier, run_precompile
from .transaction import Instruction, Receipt, Transaction

log = logging.getLogger(__name__)

SYSTEM_OWNER = "system"


@dataclass
class Account:
    balance: int = 0
    data: bytes = b""
    owner: str = SYSTEM_OWNER


class InstructionContext:
    """What a program sees while one of its instructions runs."""

    def __init__(self, ledger: "Ledger", tx: Transaction, index: int, receipt: Receipt):
        self.ledger = ledger
        self.transaction = tx
        self.index = index
        self._receipt = receipt

    @property
    def instructions(self) -> List[Instruction]:
        return self.transaction.instructions

    @property
    def round(self) -> int:
        return self.ledger.round

    def log(self, entry: bytes) -> None:
        self._receipt.logs.append(entry)

    def set_return(self, value: bytes) -> None:
        self._receipt.return_value = value


class Ledger:
    def __init__(self, verifier: Optional[Ed25519Verifier] = None):
        self._accounts: Dict[str, Account] = {}
        self._programs = {}
        self._lock = threading.RLock()
        self.round = 0
        self.verifier = verifier or Ed25519Verifier()

    # ---- programs ----
    def register(self, program_id: str, program) -> None:
        self._programs[program_id] = program

    # ---- reads ----
    def get(self, address: str) -> Optional[Account]:
        return self._accounts.get(address)

    def exists(self, address: str) -> bool:
        return address in self._accounts

    def balance(self, address: str) -> int:
        acct = self._accounts.get(address)
        return acct.balance if acct else 0

    def data(self, address: str) -> bytes:
        acct = self._accounts.get(address)
        return acct.data if acct else b""

    def program_accounts(self, owner: str) -> Iterator[Tuple[str, Account]]:
        for address, acct in list(self._accounts.items()):
            if acct.owner == owner:
                yield address, acct

    @staticmethod
    def minimum_balance(data_len: int) -> int:
        if data_len == 0:
            return 0
        return BASE_MIN_BALANCE + BYTE_MIN_BALANCE * (ACCOUNT_KEY_BYTES + data_len)

    # ---- time ----
    def advance(self, rounds: int = 1) -> int:
        if rounds < 0:
            raise ValueError(f"rounds only move forward, got {rounds}")
        with self._lock:
            self.round += rounds
            return self.round

    # ---- fund movement ----
    def fund(self, address: str, amount: int) -> None:
        """Mint `amount` into `address` (test scaffolding; no protocol path calls this)."""
        if amount <= 0:
            raise InvalidAmount(f"fund amount must be positive, got {amount}")
        with self._lock:
            self._accounts.setdefault(address, Account()).balance += amount

    def transfer(self, source: str, destination: str, amount: int) -> None:
        if amount < 0:
            raise InvalidAmount(f"transfer amount must be >= 0, got {amount}")
        src = self._accounts.get(source)
        if src is None or src.balance < amount:
            raise InsufficientFunds(
                f"{source} holds {self.balance(source)}, needs {amount}"
            )
        src.balance -= amount
        self._accounts.setdefault(destination, Account()).balance += amount

    def create_account(self, payer: str, address: str, data: bytes, owner: str) -> int:
        """Create `address` holding `data`; `payer` funds the storage deposit. Returns the deposit."""
        if address in self._accounts:
            raise AccountAlreadyExists(address)
        deposit = self.minimum_balance(len(data))
        self.transfer(payer, address, deposit)
        acct = self._accounts[address]
        acct.data = bytes(data)
        acct.owner = owner
        return deposit

    def close_account(self, address: str, destination: str) -> int:
        """Move the whole balance to `destination` and remove the account."""
        acct = self._accounts.pop(address)
        self._accounts.setdefault(destination, Account()).balance += acct.balance
        return acct.balance

    # ---- execution ----
    def _check_signatures(self, tx: Transaction) -> None:
        msg = tx.message()
        for signer in tx.required_signers():
            sig = tx.signatures.get(signer)
            if sig is None or not self.verifier.verify(signer, msg, sig):
                raise Unauthorized(f"missing or invalid signature for {signer}")

    def execute(self, tx: Transaction) -> Receipt:
        """Run every instruction of `tx`, or none of them."""
        with self._lock:
            snapshot = copy.deepcopy(self._accounts)
            receipt = Receipt(round=self.round)
            try:
                self._check_signatures(tx)
                run_precompile(tx, self.verifier)
                for index, ix in enumerate(tx.instructions):
                    if ix.program_id == ED25519_PROGRAM_ID:
                        continue
                    program = self._programs.get(ix.program_id)
                    if program is None:
                        raise UnknownMethod(f"no program at {ix.program_id}")
                    program.process(InstructionContext(self, tx, index, receipt), ix)
            except Exception:
                self._accounts = snapshot
                raise
            return receipt
