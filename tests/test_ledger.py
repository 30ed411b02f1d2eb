import pytest

from dice_escrow import InsufficientFunds, Keypair, Ledger, Unauthorized
from dice_escrow.errors import AccountAlreadyExists, InvalidAmount, UnknownMethod
from dice_escrow.ledger import SYSTEM_OWNER
from dice_escrow.transaction import AccountMeta, Instruction, Transaction


RECORDER_ID = Keypair.from_seed(b"\xc0" * 32).address
NOWHERE_ID = Keypair.from_seed(b"\xc1" * 32).address


class Recorder:
    """Toy program: moves funds as instructed, fails on demand."""

    def __init__(self):
        self.calls = []

    def process(self, ctx, ix):
        self.calls.append(ctx.index)
        src, dst = ix.accounts[0].address, ix.accounts[1].address
        ctx.ledger.transfer(src, dst, int.from_bytes(ix.data[:8], "little"))
        ctx.log(b"moved")
        if ix.data[8:] == b"fail":
            raise RuntimeError("boom")


@pytest.fixture
def alice(ledger):
    kp = Keypair.from_seed(b"\xa1" * 32)
    ledger.fund(kp.address, 1_000)
    return kp


@pytest.fixture
def bob():
    return Keypair.from_seed(b"\xb0" * 32)


@pytest.fixture
def recorder(ledger):
    prog = Recorder()
    ledger.register(RECORDER_ID, prog)
    return prog


def _move(src, dst, amount, fail=False):
    return Instruction(
        RECORDER_ID,
        [AccountMeta(src.address, is_signer=True, is_writable=True), AccountMeta(dst.address, is_writable=True)],
        amount.to_bytes(8, "little") + (b"fail" if fail else b""),
    )


def test_minimum_balance():
    assert Ledger.minimum_balance(0) == 0
    assert Ledger.minimum_balance(73) == 2500 + 400 * (32 + 73)


def test_fund_and_transfer(ledger, alice, bob):
    ledger.transfer(alice.address, bob.address, 300)
    assert ledger.balance(alice.address) == 700
    assert ledger.balance(bob.address) == 300
    with pytest.raises(InsufficientFunds):
        ledger.transfer(bob.address, alice.address, 301)


def test_fund_rejects_non_positive(ledger, alice):
    with pytest.raises(InvalidAmount):
        ledger.fund(alice.address, 0)


def test_create_and_close_account(ledger, alice, bob):
    ledger.fund(alice.address, 50_000)
    deposit = ledger.create_account(alice.address, "record", b"\x01" * 10, owner="prog")
    assert deposit == ledger.minimum_balance(10)
    assert ledger.get("record").owner == "prog"
    with pytest.raises(AccountAlreadyExists):
        ledger.create_account(alice.address, "record", b"", owner="prog")
    assert ledger.close_account("record", bob.address) == deposit
    assert ledger.balance(bob.address) == deposit
    assert not ledger.exists("record")


def test_advance(ledger):
    assert ledger.advance(5) == 5
    assert ledger.advance() == 6


def test_advance_rejects_going_back(ledger):
    ledger.advance(3)
    with pytest.raises(ValueError):
        ledger.advance(-1)
    assert ledger.round == 3


def test_execute_runs_all_instructions(ledger, recorder, alice, bob):
    receipt = ledger.execute(Transaction([_move(alice, bob, 10), _move(alice, bob, 20)]).sign(alice))
    assert recorder.calls == [0, 1]
    assert receipt.logs == [b"moved", b"moved"]
    assert ledger.balance(bob.address) == 30


def test_execute_is_all_or_nothing(ledger, recorder, alice, bob):
    tx = Transaction([_move(alice, bob, 10), _move(alice, bob, 20, fail=True)]).sign(alice)
    with pytest.raises(RuntimeError):
        ledger.execute(tx)
    assert ledger.balance(alice.address) == 1_000
    assert ledger.balance(bob.address) == 0


def test_execute_requires_signatures(ledger, recorder, alice, bob):
    with pytest.raises(Unauthorized):
        ledger.execute(Transaction([_move(alice, bob, 10)]))
    with pytest.raises(Unauthorized):
        ledger.execute(Transaction([_move(alice, bob, 10)]).sign(bob))
    assert recorder.calls == []


def test_signature_covers_instructions(ledger, recorder, alice, bob):
    signed = Transaction([_move(alice, bob, 10)]).sign(alice)
    swapped = Transaction([_move(alice, bob, 999)], signatures=dict(signed.signatures))
    with pytest.raises(Unauthorized):
        ledger.execute(swapped)


def test_unknown_program(ledger, alice):
    ix = Instruction(NOWHERE_ID, [AccountMeta(alice.address, is_signer=True)], b"")
    with pytest.raises(UnknownMethod):
        ledger.execute(Transaction([ix]).sign(alice))


def test_new_accounts_are_system_owned(ledger, alice, bob):
    ledger.transfer(alice.address, bob.address, 1)
    assert ledger.get(bob.address).owner == SYSTEM_OWNER
