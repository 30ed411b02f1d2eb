# dice_escrow/vault.py
# Custodial balance per house. Balances move only through credit/debit.
import logging

from .addresses import PROGRAM_ID, vault_address
from .errors import AlreadyInitialized, InsufficientFunds, InvalidAmount
from .ledger import Ledger

log = logging.getLogger(__name__)


class VaultLedger:
    def __init__(self, ledger: Ledger, program_id: str = PROGRAM_ID):
        self.ledger = ledger
        self.program_id = program_id

    def address_for(self, house: str) -> str:
        return vault_address(house, self.program_id)

    def exists(self, vault: str) -> bool:
        """True once `initialize` has run: the account is program-owned, not just funded."""
        acct = self.ledger.get(vault)
        return acct is not None and acct.owner == self.program_id

    def balance(self, vault: str) -> int:
        return self.ledger.balance(vault)

    def initialize(self, house: str, vault: str, amount: int) -> None:
        # funds sent to the address beforehand stay with it; ownership is what marks a vault
        if amount <= 0:
            raise InvalidAmount(f"initial vault funding must be positive, got {amount}")
        if self.exists(vault):
            raise AlreadyInitialized(f"vault {vault} already exists")
        self.credit(vault, amount, source=house)
        self.ledger.get(vault).owner = self.program_id
        log.info("vault %s initialized with %d by %s", vault, amount, house)

    def credit(self, vault: str, amount: int, source: str) -> None:
        if amount < 0:
            raise InvalidAmount(f"credit amount must be >= 0, got {amount}")
        self.ledger.transfer(source, vault, amount)

    def debit(self, vault: str, amount: int, destination: str) -> None:
        if amount < 0:
            raise InvalidAmount(f"debit amount must be >= 0, got {amount}")
        if self.balance(vault) < amount:
            raise InsufficientFunds(f"vault {vault} holds {self.balance(vault)}, cannot pay {amount}")
        self.ledger.transfer(vault, destination, amount)
