# dice_escrow/client.py
# Builds, signs and submits the four protocol operations.
import logging
from typing import Optional, Tuple

from .addresses import PROGRAM_ID, bet_address, vault_address
from .bets import BetRecord
from .errors import BetNotFound
from .ledger import Ledger
from .program import (
    INITIALIZE,
    PLACE_BET,
    REFUND_BET,
    RESOLVE_BET,
    decode_return,
    encode_call,
)
from .proof import SIGNATURE_OFFSET, SIGNATURE_SIZE, new_ed25519_instruction
from .resolution import Outcome
from .transaction import AccountMeta, Instruction, Receipt, Transaction

log = logging.getLogger(__name__)


class DiceClient:
    def __init__(self, ledger: Ledger, program_id: str = PROGRAM_ID):
        self.ledger = ledger
        self.program_id = program_id

    # ---- lookups ----
    def vault_address(self, house: str) -> str:
        return vault_address(house, self.program_id)

    def bet_address(self, house: str, seed: int) -> str:
        return bet_address(self.vault_address(house), seed, self.program_id)

    def fetch_bet(self, bet: str) -> BetRecord:
        acct = self.ledger.get(bet)
        if acct is None or acct.owner != self.program_id:
            raise BetNotFound(f"no bet at {bet}")
        try:
            return BetRecord.from_account_data(acct.data)
        except ValueError:
            raise BetNotFound(f"account {bet} is not a bet record")

    def bet_message(self, bet: str) -> bytes:
        """Account data minus the record header: what the player signs."""
        return self.fetch_bet(bet).to_message()

    # ---- operations ----
    def _call(self, data: bytes, accounts, signers, pre=()) -> Receipt:
        ix = Instruction(program_id=self.program_id, accounts=list(accounts), data=data)
        tx = Transaction(instructions=list(pre) + [ix]).sign(*signers)
        return self.ledger.execute(tx)

    def initialize(self, house, amount: int) -> Receipt:
        return self._call(
            encode_call(INITIALIZE, amount),
            [
                AccountMeta(house.address, is_signer=True, is_writable=True),
                AccountMeta(self.vault_address(house.address), is_writable=True),
            ],
            [house],
        )

    def place_bet(self, player, house: str, seed: int, roll: int, amount: int) -> str:
        vault = self.vault_address(house)
        bet = bet_address(vault, seed, self.program_id)
        self._call(
            encode_call(PLACE_BET, seed, roll, amount),
            [
                AccountMeta(player.address, is_signer=True, is_writable=True),
                AccountMeta(house),
                AccountMeta(vault, is_writable=True),
                AccountMeta(bet, is_writable=True),
            ],
            [player],
        )
        return bet

    def refund_bet(self, player, house: str, bet: str) -> Receipt:
        return self._call(
            encode_call(REFUND_BET),
            [
                AccountMeta(player.address, is_signer=True, is_writable=True),
                AccountMeta(house),
                AccountMeta(self.vault_address(house), is_writable=True),
                AccountMeta(bet, is_writable=True),
            ],
            [player],
        )

    def sign_bet(self, player, bet: str) -> Tuple[Instruction, bytes]:
        """Player side: sign the bet record. Returns the verification instruction and the 64-byte proof."""
        ix = new_ed25519_instruction(player, self.bet_message(bet))
        proof = ix.data[SIGNATURE_OFFSET:SIGNATURE_OFFSET + SIGNATURE_SIZE]
        return ix, proof

    def resolve_bet(
        self,
        house,
        player: str,
        bet: str,
        proof: bytes,
        verification: Optional[Instruction] = None,
    ) -> Outcome:
        """House side: settle `bet`. `verification` goes first in the transaction, where the program looks for it."""
        pre = [verification] if verification is not None else []
        receipt = self._call(
            encode_call(RESOLVE_BET, bytes(proof)),
            [
                AccountMeta(house.address, is_signer=True, is_writable=True),
                AccountMeta(player, is_writable=True),
                AccountMeta(self.vault_address(house.address), is_writable=True),
                AccountMeta(bet, is_writable=True),
            ],
            [house],
            pre=pre,
        )
        won, roll, payout = decode_return(RESOLVE_BET, receipt.logs)
        log.debug("resolve %s -> won=%s roll=%d payout=%d", bet, won, roll, payout)
        return Outcome(won=won, roll=roll, payout=payout)
