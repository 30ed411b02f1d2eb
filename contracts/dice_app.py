# contracts/dice_app.py
# Dice escrow approval program: per-house vault boxes, per-bet boxes, signature-derived rolls
from pyteal import *

from dice_escrow.config import (
    BASE_MIN_BALANCE,
    BPS_DENOMINATOR,
    BYTE_MIN_BALANCE,
    HOUSE_FEE_BPS,
    PAYOUT_POLICY,
    REFUND_TIMEOUT,
)

TEAL_VERSION = 8

# -------- Global keys --------
FEE_KEY = Bytes("fee")            # uint: house fee in basis points
TIMEOUT_KEY = Bytes("timeout")    # uint: refund timeout in rounds

# -------- Boxes --------
# "vault" | house(32)            -> balance(8) | exposure(8)
# "bet" | house(32) | seed(16)   -> player(32) | seed(16) | round(8) | amount(8) | roll(1)
VAULT_PREFIX = "vault"
BET_PREFIX = "bet"
VAULT_BOX_SIZE = 16
BET_BOX_SIZE = 65


def box_mbr(name_len: int, size: int) -> int:
    return BASE_MIN_BALANCE + BYTE_MIN_BALANCE * (name_len + size)


VAULT_BOX_MBR = box_mbr(len(VAULT_PREFIX) + 32, VAULT_BOX_SIZE)
BET_BOX_MBR = box_mbr(len(BET_PREFIX) + 32 + 16, BET_BOX_SIZE)

TWO_128 = Bytes("base16", "0x01" + "00" * 16)
ONE_HUNDRED = Bytes("base16", "0x64")

# ed25519verify_bare (1900) plus the settlement after it; a single app call starts with 700
VERIFY_BUDGET = 2400


def payout_expr(amount: Expr, roll: Expr, fee_bps: int, policy: str) -> Expr:
    keep = BPS_DENOMINATOR - fee_bps
    if policy == "scaled":
        return WideRatio([amount, Int(100 * keep)], [roll * Int(BPS_DENOMINATOR)])
    return WideRatio([amount, Int(keep)], [Int(BPS_DENOMINATOR)])


def roll_expr(sig: Expr) -> Expr:
    """((hi + lo) mod 2^128) mod 100 over the two halves of sha256(sig)."""
    h = ScratchVar(TealType.bytes)
    return Seq(
        h.store(Sha256(sig)),
        Btoi(BytesMod(
            BytesMod(BytesAdd(Extract(h.load(), Int(0), Int(16)), Extract(h.load(), Int(16), Int(16))), TWO_128),
            ONE_HUNDRED,
        )),
    )


def deposit_checks(pay) -> Expr:
    return Seq(
        Assert(Txn.group_index() > Int(0)),
        Assert(pay.type_enum() == TxnType.Payment),
        Assert(pay.sender() == Txn.sender()),
        Assert(pay.receiver() == Global.current_application_address()),
        Assert(pay.close_remainder_to() == Global.zero_address()),
        Assert(pay.rekey_to() == Global.zero_address()),
    )


def pay_out(receiver: Expr, amount: Expr) -> Expr:
    return InnerTxnBuilder.Execute({
        TxnField.type_enum: TxnType.Payment,
        TxnField.receiver: receiver,
        TxnField.amount: amount,
        TxnField.fee: Int(0),
    })


def approval_program(
    fee_bps: int = HOUSE_FEE_BPS,
    refund_timeout: int = REFUND_TIMEOUT,
    payout_policy: str = PAYOUT_POLICY,
) -> Expr:
    pay = Gtxn[Txn.group_index() - Int(1)]

    balance = ScratchVar(TealType.uint64)
    exposure = ScratchVar(TealType.uint64)
    stake = ScratchVar(TealType.uint64)
    owed = ScratchVar(TealType.uint64)
    payout = ScratchVar(TealType.uint64)
    rolled = ScratchVar(TealType.uint64)
    player = ScratchVar(TealType.bytes)

    def load_vault(vault_box) -> Expr:
        return Seq(
            vault_box,
            Assert(vault_box.hasValue()),
            balance.store(ExtractUint64(vault_box.value(), Int(0))),
            exposure.store(ExtractUint64(vault_box.value(), Int(8))),
        )

    def vault_state(new_balance: Expr, new_exposure: Expr) -> Expr:
        return Concat(Itob(new_balance), Itob(new_exposure))

    on_create = Seq(
        App.globalPut(FEE_KEY, Int(fee_bps)),
        App.globalPut(TIMEOUT_KEY, Int(refund_timeout)),
        Approve(),
    )

    # ---- Methods ----

    # initialize  [group: payment(house -> app, amount + vault box mbr), appcall]
    house_vault = Concat(Bytes(VAULT_PREFIX), Txn.sender())
    do_initialize = Seq(
        deposit_checks(pay),
        Assert(pay.amount() > Int(VAULT_BOX_MBR)),
        Assert(App.box_create(house_vault, Int(VAULT_BOX_SIZE))),   # 0 when the vault already exists
        App.box_put(house_vault, vault_state(pay.amount() - Int(VAULT_BOX_MBR), Int(0))),
        Log(Bytes("init")),
        Approve(),
    )

    # place_bet(house, seed, roll)  [group: payment(player -> app, stake + bet box mbr), appcall]
    bet_house = Txn.application_args[1]
    bet_seed = Txn.application_args[2]
    bet_roll = Btoi(Txn.application_args[3])
    bet_vault_name = Concat(Bytes(VAULT_PREFIX), bet_house)
    bet_name = Concat(Bytes(BET_PREFIX), bet_house, bet_seed)
    place_vault = App.box_get(bet_vault_name)
    do_place_bet = Seq(
        Assert(Len(bet_house) == Int(32)),
        Assert(Len(bet_seed) == Int(16)),
        Assert(bet_roll > Int(0)),
        Assert(bet_roll < Int(100)),
        deposit_checks(pay),
        Assert(pay.amount() > Int(BET_BOX_MBR)),
        stake.store(pay.amount() - Int(BET_BOX_MBR)),
        load_vault(place_vault),
        owed.store(payout_expr(stake.load(), bet_roll, fee_bps, payout_policy)),
        Assert(balance.load() >= exposure.load() + owed.load()),
        Assert(App.box_create(bet_name, Int(BET_BOX_SIZE))),       # 0 on a reused seed
        App.box_put(bet_name, Concat(
            Txn.sender(),
            bet_seed,
            Itob(Global.round()),
            Itob(stake.load()),
            Extract(Itob(bet_roll), Int(7), Int(1)),
        )),
        App.box_put(bet_vault_name, vault_state(balance.load() + stake.load(), exposure.load() + owed.load())),
        Log(Bytes("bet")),
        Approve(),
    )

    # refund_bet(house, seed)  [player only, after timeout]
    refund_bet_box = App.box_get(bet_name)
    refund_vault = App.box_get(bet_vault_name)
    do_refund_bet = Seq(
        Assert(Len(bet_house) == Int(32)),
        Assert(Len(bet_seed) == Int(16)),
        refund_bet_box,
        Assert(refund_bet_box.hasValue()),
        Assert(Extract(refund_bet_box.value(), Int(0), Int(32)) == Txn.sender()),
        Assert(Global.round() - ExtractUint64(refund_bet_box.value(), Int(48)) >= Int(refund_timeout)),
        stake.store(ExtractUint64(refund_bet_box.value(), Int(56))),
        owed.store(payout_expr(stake.load(), GetByte(refund_bet_box.value(), Int(64)), fee_bps, payout_policy)),
        load_vault(refund_vault),
        App.box_put(bet_vault_name, vault_state(balance.load() - stake.load(), exposure.load() - owed.load())),
        Assert(App.box_delete(bet_name)),
        pay_out(Txn.sender(), stake.load() + Int(BET_BOX_MBR)),
        Log(Bytes("refund")),
        Approve(),
    )

    # resolve_bet(seed, sig)  [house only; sig must be the player's signature over the bet box]
    res_seed = Txn.application_args[1]
    res_sig = Txn.application_args[2]
    res_name = Concat(Bytes(BET_PREFIX), Txn.sender(), res_seed)
    res_vault_name = Concat(Bytes(VAULT_PREFIX), Txn.sender())
    res_bet_box = App.box_get(res_name)
    res_vault = App.box_get(res_vault_name)
    do_resolve_bet = Seq(
        Assert(Len(res_seed) == Int(16)),
        Assert(Len(res_sig) == Int(64)),
        res_bet_box,
        Assert(res_bet_box.hasValue()),
        player.store(Extract(res_bet_box.value(), Int(0), Int(32))),
        OpUp(OpUpMode.OnCall).ensure_budget(Int(VERIFY_BUDGET), fee_source=OpUpFeeSource.GroupCredit),
        Assert(Ed25519Verify_Bare(res_bet_box.value(), res_sig, player.load())),
        stake.store(ExtractUint64(res_bet_box.value(), Int(56))),
        owed.store(payout_expr(stake.load(), GetByte(res_bet_box.value(), Int(64)), fee_bps, payout_policy)),
        rolled.store(roll_expr(res_sig)),
        payout.store(If(rolled.load() < GetByte(res_bet_box.value(), Int(64)), owed.load(), Int(0))),
        load_vault(res_vault),
        App.box_put(res_vault_name, vault_state(balance.load() - payout.load(), exposure.load() - owed.load())),
        Assert(App.box_delete(res_name)),
        pay_out(player.load(), payout.load() + Int(BET_BOX_MBR)),
        If(rolled.load() < GetByte(res_bet_box.value(), Int(64)), Log(Bytes("win")), Log(Bytes("loss"))),
        Approve(),
    )

    on_noop = Cond(
        [Txn.application_args[0] == Bytes("initialize"), do_initialize],
        [Txn.application_args[0] == Bytes("place_bet"), do_place_bet],
        [Txn.application_args[0] == Bytes("refund_bet"), do_refund_bet],
        [Txn.application_args[0] == Bytes("resolve_bet"), do_resolve_bet],
    )

    # no update or delete: the program custodies every house vault
    program = Cond(
        [Txn.application_id() == Int(0), on_create],
        [Txn.on_completion() == OnComplete.NoOp, on_noop],
        [Int(1), Reject()],
    )
    return program


def clear_state_program() -> Expr:
    return Approve()


if __name__ == "__main__":
    print(compileTeal(approval_program(), mode=Mode.Application, version=TEAL_VERSION))
