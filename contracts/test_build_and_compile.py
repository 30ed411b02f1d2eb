import json, hashlib
import pytest
import requests
from pyteal import compileTeal, Mode

from build import build, main
from dice_app import (
    BET_BOX_MBR,
    TEAL_VERSION,
    VAULT_BOX_MBR,
    VERIFY_BUDGET,
    approval_program,
    clear_state_program,
)
from dice_escrow.config import ALGOD_ADDR, ALGOD_TOKEN

def _algod_up() -> bool:
    try:
        requests.get(f"{ALGOD_ADDR}/health", timeout=2)
    except requests.RequestException:
        return False
    return True

def test_box_deposits():
    assert VAULT_BOX_MBR == 2500 + 400 * (5 + 32 + 16)
    assert BET_BOX_MBR == 2500 + 400 * (3 + 32 + 16 + 65)

@pytest.mark.parametrize("policy", ["flat", "scaled"])
def test_approval_compiles(policy):
    teal = compileTeal(approval_program(150, 1000, policy), mode=Mode.Application, version=TEAL_VERSION)
    assert teal.startswith(f"#pragma version {TEAL_VERSION}")
    for op in ("ed25519verify_bare", "box_create", "box_del", "itxn_submit", "b%", "sha256"):
        assert op in teal, f"missing {op}"

def test_resolve_pools_opcode_budget():
    teal = compileTeal(approval_program(150, 1000, "flat"), mode=Mode.Application, version=TEAL_VERSION)
    assert "global OpcodeBudget" in teal
    assert VERIFY_BUDGET > 1900

def test_no_creator_escape_hatch():
    teal = compileTeal(approval_program(150, 1000, "flat"), mode=Mode.Application, version=TEAL_VERSION)
    assert "global CreatorAddress" not in teal
    assert "UpdateApplication" not in teal

def test_clear_compiles():
    teal = compileTeal(clear_state_program(), mode=Mode.Application, version=TEAL_VERSION)
    assert "return" in teal or "int 1" in teal

def test_build_writes_artifacts(tmp_path):
    manifest = build(tmp_path)
    approval = (tmp_path / "approval.teal").read_text()
    clear = (tmp_path / "clear.teal").read_text()
    j = json.loads((tmp_path / "contract.manifest.json").read_text())
    assert j == manifest
    assert j["artifacts"]["approval"]["sha256"] == hashlib.sha256(approval.encode("utf-8")).hexdigest()
    assert j["artifacts"]["clear"]["sha256"] == hashlib.sha256(clear.encode("utf-8")).hexdigest()
    assert j["params"]["bet_box_mbr"] == BET_BOX_MBR

def test_build_cli(tmp_path, capsys):
    main(["--out", str(tmp_path), "--fee-bps", "200", "--payout-policy", "scaled"])
    j = json.loads((tmp_path / "contract.manifest.json").read_text())
    assert j["params"]["fee_bps"] == 200
    assert j["params"]["payout_policy"] == "scaled"
    assert "Wrote artifacts" in capsys.readouterr().out

def test_params_change_program():
    a = compileTeal(approval_program(150, 1000, "flat"), mode=Mode.Application, version=TEAL_VERSION)
    b = compileTeal(approval_program(300, 1000, "flat"), mode=Mode.Application, version=TEAL_VERSION)
    assert a != b

@pytest.mark.localnet
@pytest.mark.skipif(not _algod_up(), reason="algod not reachable")
def test_algod_compile_endpoint_localnet(tmp_path):
    build(tmp_path)
    approval = (tmp_path / "approval.teal").read_text()

    headers = {"Content-Type": "text/plain", "X-Algo-API-Token": ALGOD_TOKEN}

    r = requests.post(
        f"{ALGOD_ADDR}/v2/teal/compile",
        data=approval,
        headers=headers,
        timeout=15,
    )
    assert r.status_code == 200, f"compile failed: {r.status_code} {r.text}"
    assert "result" in r.json()
