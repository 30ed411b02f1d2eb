# dice_escrow/program.py
# Instruction entry points: ABI method dispatch, account checks, authorization.
import logging
from typing import Optional

from algosdk import abi

from .addresses import PROGRAM_ID
from .bets import BetStore
from .config import ProtocolConfig
from .errors import InvalidDerivedAddress, Unauthorized, UnknownMethod
from .ledger import InstructionContext, Ledger
from .payout import win_payout
from .resolution import ResolutionEngine
from .transaction import AccountMeta, Instruction
from .vault import VaultLedger

log = logging.getLogger(__name__)

INITIALIZE = abi.Method.from_signature("initialize(uint64)void")
PLACE_BET = abi.Method.from_signature("place_bet(uint128,uint8,uint64)void")
REFUND_BET = abi.Method.from_signature("refund_bet()void")
RESOLVE_BET = abi.Method.from_signature("resolve_bet(byte[64])(bool,uint8,uint64)")

RETURN_PREFIX = bytes.fromhex("151f7c75")

# event tags written to the transaction log
LOG_INIT = b"init"
LOG_BET = b"bet"
LOG_REFUND = b"refund"
LOG_WIN = b"win"
LOG_LOSS = b"loss"


def _args_codec(method: abi.Method) -> Optional[abi.TupleType]:
    if not method.args:
        return None
    return abi.TupleType([arg.type for arg in method.args])


def encode_call(method: abi.Method, *args) -> bytes:
    codec = _args_codec(method)
    body = codec.encode(list(args)) if codec else b""
    return method.get_selector() + body


def decode_return(method: abi.Method, logs):
    """Decode the ARC-4 return value from the last prefixed log entry."""
    for entry in reversed(logs):
        if entry.startswith(RETURN_PREFIX):
            return method.returns.type.decode(entry[len(RETURN_PREFIX):])
    return None


class DiceProgram:
    def __init__(self, ledger: Ledger, config: Optional[ProtocolConfig] = None, program_id: str = PROGRAM_ID):
        self.program_id = program_id
        self.config = (config or ProtocolConfig()).validate()
        self.vaults = VaultLedger(ledger, program_id)
        self.bets = BetStore(ledger, self.vaults, self.liability, program_id)
        self.engine = ResolutionEngine(ledger, self.vaults, self.bets, self.config)
        self._handlers = {
            INITIALIZE.get_selector(): (INITIALIZE, 2, self._initialize),
            PLACE_BET.get_selector(): (PLACE_BET, 4, self._place_bet),
            REFUND_BET.get_selector(): (REFUND_BET, 4, self._refund_bet),
            RESOLVE_BET.get_selector(): (RESOLVE_BET, 4, self._resolve_bet),
        }
        ledger.register(program_id, self)

    def liability(self, record) -> int:
        return win_payout(record.amount, record.roll, self.config.fee_bps, self.config.payout_policy)

    # ---- dispatch ----
    def process(self, ctx: InstructionContext, ix: Instruction) -> None:
        selector, body = ix.data[:4], ix.data[4:]
        entry = self._handlers.get(selector)
        if entry is None:
            raise UnknownMethod(f"unknown selector {selector.hex()}")
        method, n_accounts, handler = entry
        if len(ix.accounts) != n_accounts:
            raise UnknownMethod(f"{method.name} expects {n_accounts} accounts, got {len(ix.accounts)}")
        codec = _args_codec(method)
        try:
            args = codec.decode(body) if codec else []
        except Exception as err:
            raise UnknownMethod(f"{method.name}: undecodable arguments ({err})")
        log.debug("%s%s", method.name, tuple(args))
        handler(ctx, ix.accounts, *args)

    # ---- checks ----
    @staticmethod
    def _require_signer(meta: AccountMeta) -> str:
        if not meta.is_signer:
            raise Unauthorized(f"{meta.address} must sign")
        return meta.address

    def _require_vault(self, house: str, vault: AccountMeta) -> str:
        expected = self.vaults.address_for(house)
        if vault.address != expected:
            raise InvalidDerivedAddress(f"vault {vault.address} is not derived from house {house}")
        return expected

    def _require_bet(self, vault: str, bet: AccountMeta, seed: int) -> str:
        if bet.address != self.bets.address_for(vault, seed):
            raise InvalidDerivedAddress(f"bet {bet.address} is not derived from vault {vault}")
        return bet.address

    # ---- methods ----
    def _initialize(self, ctx, accounts, amount):
        house = self._require_signer(accounts[0])
        vault = self._require_vault(house, accounts[1])
        self.vaults.initialize(house, vault, amount)
        ctx.log(LOG_INIT)

    def _place_bet(self, ctx, accounts, seed, roll, amount):
        player = self._require_signer(accounts[0])
        house = accounts[1].address
        vault = self._require_vault(house, accounts[2])
        self._require_bet(vault, accounts[3], seed)
        self.bets.create(player, vault, seed, roll, amount)
        ctx.log(LOG_BET)

    def _refund_bet(self, ctx, accounts):
        player = self._require_signer(accounts[0])
        house = accounts[1].address
        vault = self._require_vault(house, accounts[2])
        record = self.bets.load(accounts[3].address)
        bet = self._require_bet(vault, accounts[3], record.seed)
        self.engine.refund(player, vault, bet)
        ctx.log(LOG_REFUND)

    def _resolve_bet(self, ctx, accounts, proof):
        house = self._require_signer(accounts[0])
        player = accounts[1].address
        vault = self._require_vault(house, accounts[2])
        record = self.bets.load(accounts[3].address)
        bet = self._require_bet(vault, accounts[3], record.seed)
        outcome = self.engine.resolve(player, vault, bet, bytes(proof), ctx.instructions)
        ctx.log(LOG_WIN if outcome.won else LOG_LOSS)
        ctx.log(RETURN_PREFIX + RESOLVE_BET.returns.type.encode([outcome.won, outcome.roll, outcome.payout]))
