"""
Bet settlement.

Per record:

    Created --(round - created_at >= refund_timeout)--> refund  --> closed
    Created --(valid player signature, any time)------> resolve --> closed (win | loss)

Both paths close the record and return its storage deposit to the player.
The player's Ed25519 signature over the record is deterministic, so neither
side can reroll by resubmitting: the same message always yields the same
signature and therefore the same outcome.
"""
import logging
from dataclasses import dataclass
from typing import List

from .bets import BetRecord, BetStore
from .config import ProtocolConfig
from .errors import MissingOrInvalidSignatureProof, TimeoutNotReached, Unauthorized
from .ledger import Ledger
from .payout import is_win, roll_from_signature, win_payout
from .proof import verify_signature_proof
from .transaction import Instruction
from .vault import VaultLedger

log = logging.getLogger(__name__)


@dataclass(frozen=True)
class Outcome:
    won: bool
    roll: int
    payout: int


class ResolutionEngine:
    def __init__(self, ledger: Ledger, vaults: VaultLedger, bets: BetStore, config: ProtocolConfig):
        self.ledger = ledger
        self.vaults = vaults
        self.bets = bets
        self.config = config

    def payout_for(self, record: BetRecord) -> int:
        return win_payout(record.amount, record.roll, self.config.fee_bps, self.config.payout_policy)

    def refundable(self, record: BetRecord) -> bool:
        return self.ledger.round - record.created_at >= self.config.refund_timeout

    def refund(self, player: str, vault: str, bet: str) -> int:
        """Return the stake to the player once the timeout has passed. Returns the total paid back."""
        record = self.bets.load(bet)
        if record.player != player:
            raise Unauthorized(f"{player} did not place bet {bet}")
        if not self.refundable(record):
            raise TimeoutNotReached(
                f"bet {bet} refundable at round {record.created_at + self.config.refund_timeout}, now {self.ledger.round}"
            )
        self.vaults.debit(vault, record.amount, destination=player)
        deposit = self.bets.close(bet, destination=player)
        log.info("bet %s refunded: %d + deposit %d", bet, record.amount, deposit)
        return record.amount + deposit

    def resolve(
        self,
        player: str,
        vault: str,
        bet: str,
        proof: bytes,
        instructions: List[Instruction],
        proof_index: int = 0,
    ) -> Outcome:
        record = self.bets.load(bet)
        if record.player != player:
            raise Unauthorized(f"{player} did not place bet {bet}")

        message = record.to_message()
        try:
            verify_signature_proof(instructions, record.player, message, proof, index=proof_index)
        except MissingOrInvalidSignatureProof as err:
            log.warning("bet %s: signature proof rejected (%s)", bet, err.reason)
            raise

        rolled = roll_from_signature(proof)
        won = is_win(rolled, record.roll)
        payout = 0
        if won:
            payout = self.payout_for(record)
            self.vaults.debit(vault, payout, destination=player)
        self.bets.close(bet, destination=player)

        outcome = Outcome(won=won, roll=rolled, payout=payout)
        log.info("bet %s resolved: rolled=%d threshold=%d won=%s payout=%d",
                 bet, rolled, record.roll, outcome.won, payout)
        return outcome
