# dice_escrow/transaction.py
# Instructions, transactions and receipts exchanged with the ledger.
import struct
from dataclasses import dataclass, field
from typing import Dict, List, Optional

from .addresses import to_bytes


@dataclass(frozen=True)
class AccountMeta:
    address: str
    is_signer: bool = False
    is_writable: bool = False


@dataclass(frozen=True)
class Instruction:
    program_id: str
    accounts: List[AccountMeta] = field(default_factory=list)
    data: bytes = b""

    def serialize(self) -> bytes:
        out = [to_bytes(self.program_id), struct.pack("<H", len(self.accounts))]
        for meta in self.accounts:
            out.append(to_bytes(meta.address))
            out.append(bytes([meta.is_signer | (meta.is_writable << 1)]))
        out.append(struct.pack("<I", len(self.data)))
        out.append(self.data)
        return b"".join(out)


@dataclass
class Transaction:
    instructions: List[Instruction]
    signatures: Dict[str, bytes] = field(default_factory=dict)

    def message(self) -> bytes:
        body = b"".join(ix.serialize() for ix in self.instructions)
        return struct.pack("<H", len(self.instructions)) + body

    def sign(self, *keypairs) -> "Transaction":
        msg = self.message()
        for kp in keypairs:
            self.signatures[kp.address] = kp.sign(msg)
        return self

    def required_signers(self) -> List[str]:
        seen = []
        for ix in self.instructions:
            for meta in ix.accounts:
                if meta.is_signer and meta.address not in seen:
                    seen.append(meta.address)
        return seen


@dataclass
class Receipt:
    round: int
    logs: List[bytes] = field(default_factory=list)
    return_value: Optional[bytes] = None
