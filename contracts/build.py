# contracts/build.py
import argparse
import json, hashlib
from pathlib import Path
from pyteal import compileTeal, Mode
from dice_app import (
    BET_BOX_MBR,
    TEAL_VERSION,
    VAULT_BOX_MBR,
    approval_program,
    clear_state_program,
)
from dice_escrow.config import HOUSE_FEE_BPS, PAYOUT_POLICY, REFUND_TIMEOUT

ARTIFACTS = Path(__file__).resolve().parent.parent / "artifacts"

def sha256_hex(s: str) -> str:
    return hashlib.sha256(s.encode("utf-8")).hexdigest()

def build(out_dir: Path = ARTIFACTS, fee_bps: int = HOUSE_FEE_BPS,
          refund_timeout: int = REFUND_TIMEOUT, payout_policy: str = PAYOUT_POLICY) -> dict:
    out_dir.mkdir(parents=True, exist_ok=True)
    approval_teal = compileTeal(
        approval_program(fee_bps, refund_timeout, payout_policy),
        mode=Mode.Application, version=TEAL_VERSION,
    )
    clear_teal = compileTeal(clear_state_program(), mode=Mode.Application, version=TEAL_VERSION)

    (out_dir / "approval.teal").write_text(approval_teal, encoding="utf-8")
    (out_dir / "clear.teal").write_text(clear_teal, encoding="utf-8")

    manifest = {
        "contract": "dice escrow",
        "teal_version": TEAL_VERSION,
        "params": {
            "fee_bps": fee_bps,
            "refund_timeout": refund_timeout,
            "payout_policy": payout_policy,
            "vault_box_mbr": VAULT_BOX_MBR,
            "bet_box_mbr": BET_BOX_MBR,
        },
        "artifacts": {
            "approval": {"file": "approval.teal", "sha256": sha256_hex(approval_teal)},
            "clear": {"file": "clear.teal", "sha256": sha256_hex(clear_teal)},
        },
    }
    (out_dir / "contract.manifest.json").write_text(json.dumps(manifest, indent=2), encoding="utf-8")
    return manifest

def main(argv=None):
    parser = argparse.ArgumentParser(description="Compile the dice escrow app to TEAL")
    parser.add_argument("--out", type=Path, default=ARTIFACTS)
    parser.add_argument("--fee-bps", type=int, default=HOUSE_FEE_BPS)
    parser.add_argument("--refund-timeout", type=int, default=REFUND_TIMEOUT)
    parser.add_argument("--payout-policy", choices=["flat", "scaled"], default=PAYOUT_POLICY)
    args = parser.parse_args(argv)
    build(args.out, args.fee_bps, args.refund_timeout, args.payout_policy)
    print("Wrote artifacts to", args.out)

if __name__ == "__main__":
    main()
