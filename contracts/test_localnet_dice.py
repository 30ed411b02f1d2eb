import base64
import pytest
import requests

from algosdk import account, logic
from algosdk.error import AlgodHTTPError
from algosdk.v2client.algod import AlgodClient
from algosdk.kmd import KMDClient
from algosdk.transaction import (
    StateSchema, OnComplete,
    ApplicationCreateTxn, ApplicationDeleteTxn, ApplicationNoOpTxn, PaymentTxn,
    assign_group_id, wait_for_confirmation,
)
from pyteal import compileTeal, Mode

from dice_app import (
    BET_BOX_MBR, BET_PREFIX, TEAL_VERSION, VAULT_BOX_MBR, VAULT_PREFIX,
    approval_program, clear_state_program,
)
from dice_escrow.config import ALGOD_ADDR, ALGOD_TOKEN, KMD_ADDR, KMD_TOKEN
from dice_escrow.keys import Keypair
from dice_escrow.payout import is_win, roll_from_signature, win_payout

def _algod_up() -> bool:
    try:
        requests.get(f"{ALGOD_ADDR}/health", timeout=2)
    except requests.RequestException:
        return False
    return True

pytestmark = [
    pytest.mark.localnet,
    pytest.mark.skipif(not _algod_up(), reason="algod not reachable"),
]

def algod() -> AlgodClient:
    return AlgodClient(ALGOD_TOKEN, ALGOD_ADDR, headers={"X-Algo-API-Token": ALGOD_TOKEN})

def kmd() -> KMDClient:
    return KMDClient(KMD_TOKEN, KMD_ADDR)

def _funder():
    """First KMD wallet key; LocalNet wallets unlock with '', 'a' or 'testpassword'."""
    k = kmd()
    wallets = k.list_wallets()
    wl = wallets["wallets"] if isinstance(wallets, dict) else wallets
    assert wl, "No KMD wallets found"
    wid = wl[0]["id"]
    for pw in ["", "a", "testpassword"]:
        try:
            h = k.init_wallet_handle(wid, pw)
        except Exception:
            continue
        try:
            keys = k.list_keys(h)
            addr = keys[0] if keys else k.generate_key(h)
            return addr, k.export_key(h, pw, addr)
        finally:
            k.release_wallet_handle(h)
    raise AssertionError("Could not unlock KMD wallet with '', 'a', or 'testpassword'")

def _send(*txns_and_keys):
    txns = [t for t, _ in txns_and_keys]
    if len(txns) > 1:
        assign_group_id(txns)
    signed = [t.sign(sk) for t, sk in txns_and_keys]
    txid = algod().send_transactions(signed)
    return wait_for_confirmation(algod(), txid, 10)

def _compile(expr) -> bytes:
    teal = compileTeal(expr, mode=Mode.Application, version=TEAL_VERSION)
    return base64.b64decode(algod().compile(teal)["result"])

def _new_account(funder, funder_sk, amount):
    sk, addr = account.generate_account()
    _send((PaymentTxn(funder, algod().suggested_params(), addr, amount), funder_sk))
    return addr, sk

def test_dice_round_on_localnet():
    funder, funder_sk = _funder()

    create = ApplicationCreateTxn(
        sender=funder, sp=algod().suggested_params(), on_complete=OnComplete.NoOpOC,
        approval_program=_compile(approval_program(150, 1000, "flat")),
        clear_program=_compile(clear_state_program()),
        # globals: fee, timeout (uints)
        global_schema=StateSchema(num_uints=2, num_byte_slices=0),
        local_schema=StateSchema(0, 0),
        note=b"dice escrow localnet create",
    )
    app_id = _send((create, funder_sk))["application-index"]
    assert app_id and app_id > 0
    app_addr = logic.get_application_address(app_id)
    _send((PaymentTxn(funder, algod().suggested_params(), app_addr, 100_000), funder_sk))

    house, house_sk = _new_account(funder, funder_sk, 5_000_000)
    player, player_sk = _new_account(funder, funder_sk, 2_000_000)
    house_raw = Keypair(house_sk).public_key
    vault_box = VAULT_PREFIX.encode() + house_raw

    # initialize: 2 Algo into the vault
    sp = algod().suggested_params()
    _send(
        (PaymentTxn(house, sp, app_addr, 2_000_000 + VAULT_BOX_MBR), house_sk),
        (ApplicationNoOpTxn(house, sp, app_id, app_args=[b"initialize"], boxes=[(0, vault_box)]), house_sk),
    )

    # place_bet: 0.1 Algo on roll 50
    seed = (100).to_bytes(16, "big")
    bet_box = BET_PREFIX.encode() + house_raw + seed
    stake = 100_000
    sp = algod().suggested_params()
    _send(
        (PaymentTxn(player, sp, app_addr, stake + BET_BOX_MBR), player_sk),
        (ApplicationNoOpTxn(player, sp, app_id,
                            app_args=[b"place_bet", house_raw, seed, (50).to_bytes(8, "big")],
                            boxes=[(0, vault_box), (0, bet_box)]), player_sk),
    )

    record = base64.b64decode(algod().application_box_by_name(app_id, bet_box)["value"])
    assert record[:32] == Keypair(player_sk).public_key
    assert record[-1] == 50

    # resolve_bet: the player's signature over the box decides the roll
    sig = Keypair(player_sk).sign(record)
    before = algod().account_info(player)["amount"]
    sp = algod().suggested_params()
    sp.flat_fee = True
    sp.fee = 6 * sp.min_fee  # inner payout plus the budget-pooling app calls
    _send((ApplicationNoOpTxn(house, sp, app_id, app_args=[b"resolve_bet", seed, sig],
                              boxes=[(0, vault_box), (0, bet_box)]), house_sk))
    after = algod().account_info(player)["amount"]

    expected = BET_BOX_MBR
    if is_win(roll_from_signature(sig), 50):
        expected += win_payout(stake, 50, 150, "flat")
    assert after - before == expected

    vault = base64.b64decode(algod().application_box_by_name(app_id, vault_box)["value"])
    assert int.from_bytes(vault[8:], "big") == 0, "exposure should drop back to zero"

    # the creator cannot pull the program out from under the vaults
    with pytest.raises(AlgodHTTPError):
        _send((ApplicationDeleteTxn(funder, algod().suggested_params(), app_id), funder_sk))
