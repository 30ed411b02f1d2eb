import itertools

import pytest

from dice_escrow import DiceClient, DiceProgram, Keypair, Ledger, ProtocolConfig
from dice_escrow.bets import BetRecord
from dice_escrow.payout import is_win, roll_from_signature

ONE_COIN = 1_000_000_000


@pytest.fixture
def ledger():
    return Ledger()


@pytest.fixture
def config():
    return ProtocolConfig(fee_bps=150, refund_timeout=1000, payout_policy="flat")


@pytest.fixture
def program(ledger, config):
    return DiceProgram(ledger, config)


@pytest.fixture
def client(ledger, program):
    return DiceClient(ledger, program.program_id)


@pytest.fixture
def house(ledger):
    kp = Keypair.from_seed(b"\x11" * 32)
    ledger.fund(kp.address, 10 * ONE_COIN)
    return kp


@pytest.fixture
def player(ledger):
    kp = Keypair.from_seed(b"\x22" * 32)
    ledger.fund(kp.address, 10 * ONE_COIN)
    return kp


@pytest.fixture
def vault(client, house):
    client.initialize(house, 2 * ONE_COIN)
    return client.vault_address(house.address)


@pytest.fixture
def seed_for(ledger):
    """Find a seed whose bet, placed at the current round, resolves the way the test wants."""
    def find(player, roll, amount, win, start=0):
        for seed in itertools.count(start):
            record = BetRecord(player.address, seed, ledger.round, amount, roll)
            rolled = roll_from_signature(player.sign(record.to_message()))
            if is_win(rolled, roll) == win:
                return seed
    return find
