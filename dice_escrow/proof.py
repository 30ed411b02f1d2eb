"""
Ed25519 signature proofs.

The ledger verifies every Ed25519 instruction in a transaction before any
program runs (a precompile). Programs never do signature math themselves;
they inspect a sibling verification instruction and check that it attests
the exact signer, signature and message they expect.

Instruction data layout (little-endian):

    u8  num_signatures
    u8  padding
    per signature, 7 x u16:
        signature_offset, signature_instruction_index,
        public_key_offset, public_key_instruction_index,
        message_data_offset, message_data_size, message_instruction_index
    public key (32) | signature (64) | message

An instruction index of 0xFFFF refers to the instruction itself.
"""
import logging
import struct
from dataclasses import dataclass
from typing import List, Optional

from nacl.exceptions import BadSignatureError
from nacl.signing import VerifyKey

from .addresses import ED25519_PROGRAM_ID, to_bytes
from .errors import MissingOrInvalidSignatureProof
from .transaction import Instruction, Transaction

log = logging.getLogger(__name__)

SELF_INDEX = 0xFFFF
HEADER_SIZE = 2
OFFSETS_SIZE = 14
PUBKEY_SIZE = 32
SIGNATURE_SIZE = 64
DATA_START = HEADER_SIZE + OFFSETS_SIZE
PUBKEY_OFFSET = DATA_START                    # 16
SIGNATURE_OFFSET = PUBKEY_OFFSET + PUBKEY_SIZE  # 48
MESSAGE_OFFSET = SIGNATURE_OFFSET + SIGNATURE_SIZE  # 112

_OFFSETS = struct.Struct("<7H")


class Ed25519Verifier:
    """verify(signer, message, signature) -> bool, backed by libsodium."""

    def verify(self, signer, message: bytes, signature: bytes) -> bool:
        try:
            VerifyKey(to_bytes(signer)).verify(message, signature)
        except (BadSignatureError, ValueError):
            return False
        return True


@dataclass
class SignatureOffsets:
    signature_offset: int
    signature_instruction_index: int
    public_key_offset: int
    public_key_instruction_index: int
    message_data_offset: int
    message_data_size: int
    message_instruction_index: int


@dataclass
class Ed25519Signature:
    is_verifiable: bool
    public_key: Optional[bytes]
    signature: Optional[bytes]
    message: Optional[bytes]


def new_ed25519_instruction(keypair, message: bytes) -> Instruction:
    """Sign `message` with `keypair` and wrap it as a self-contained verification instruction."""
    signature = keypair.sign(message)
    offsets = _OFFSETS.pack(
        SIGNATURE_OFFSET, SELF_INDEX,
        PUBKEY_OFFSET, SELF_INDEX,
        MESSAGE_OFFSET, len(message), SELF_INDEX,
    )
    data = bytes([1, 0]) + offsets + keypair.public_key + signature + message
    return Instruction(program_id=ED25519_PROGRAM_ID, accounts=[], data=data)


def _slice(data: bytes, offset: int, size: int) -> Optional[bytes]:
    if offset + size > len(data):
        return None
    return data[offset:offset + size]


def unpack_offsets(data: bytes) -> List[SignatureOffsets]:
    """Raises ValueError when the data cannot hold the declared offsets."""
    if len(data) < HEADER_SIZE:
        raise ValueError("ed25519 instruction data too short")
    count = data[0]
    if len(data) < HEADER_SIZE + count * OFFSETS_SIZE:
        raise ValueError("ed25519 instruction data truncated")
    return [
        SignatureOffsets(*_OFFSETS.unpack_from(data, HEADER_SIZE + i * OFFSETS_SIZE))
        for i in range(count)
    ]


def unpack_signatures(data: bytes) -> List[Ed25519Signature]:
    """Read the signatures an instruction carries in its own data.

    Entries that point into other instructions are reported as not verifiable
    and have no resolved fields.
    """
    out = []
    for o in unpack_offsets(data):
        self_contained = (
            o.signature_instruction_index == SELF_INDEX
            and o.public_key_instruction_index == SELF_INDEX
            and o.message_instruction_index == SELF_INDEX
        )
        if not self_contained:
            out.append(Ed25519Signature(False, None, None, None))
            continue
        out.append(Ed25519Signature(
            is_verifiable=True,
            public_key=_slice(data, o.public_key_offset, PUBKEY_SIZE),
            signature=_slice(data, o.signature_offset, SIGNATURE_SIZE),
            message=_slice(data, o.message_data_offset, o.message_data_size),
        ))
    return out


def run_precompile(tx: Transaction, verifier: Ed25519Verifier) -> None:
    """Verify every signature of every Ed25519 instruction in `tx`."""
    instructions = tx.instructions

    def resolve(own: bytes, index: int, offset: int, size: int) -> Optional[bytes]:
        if index == SELF_INDEX:
            return _slice(own, offset, size)
        if index >= len(instructions):
            return None
        return _slice(instructions[index].data, offset, size)

    for ix in instructions:
        if ix.program_id != ED25519_PROGRAM_ID:
            continue
        try:
            entries = unpack_offsets(ix.data)
        except ValueError:
            raise MissingOrInvalidSignatureProof("precompile", "malformed ed25519 instruction")
        for o in entries:
            pk = resolve(ix.data, o.public_key_instruction_index, o.public_key_offset, PUBKEY_SIZE)
            sig = resolve(ix.data, o.signature_instruction_index, o.signature_offset, SIGNATURE_SIZE)
            msg = resolve(ix.data, o.message_instruction_index, o.message_data_offset, o.message_data_size)
            if pk is None or sig is None or msg is None:
                raise MissingOrInvalidSignatureProof("precompile", "ed25519 offsets out of bounds")
            if not verifier.verify(pk, msg, sig):
                log.warning("ed25519 precompile rejected a signature")
                raise MissingOrInvalidSignatureProof("precompile", "ed25519 signature does not verify")


def verify_signature_proof(
    instructions: List[Instruction],
    signer,
    message: bytes,
    proof: bytes,
    index: int = 0,
) -> None:
    """Check that instruction `index` attests `proof` as `signer`'s signature over `message`.

    The precompile has already run by the time a program calls this, so a
    matching instruction implies a valid signature.
    """
    if index >= len(instructions):
        raise MissingOrInvalidSignatureProof("missing")
    ix = instructions[index]
    if ix.program_id != ED25519_PROGRAM_ID:
        raise MissingOrInvalidSignatureProof("program")
    if ix.accounts:
        raise MissingOrInvalidSignatureProof("accounts")
    try:
        signatures = unpack_signatures(ix.data)
    except ValueError:
        raise MissingOrInvalidSignatureProof("data_length")
    if len(signatures) != 1:
        raise MissingOrInvalidSignatureProof("signature_count")

    sig = signatures[0]
    if not sig.is_verifiable:
        raise MissingOrInvalidSignatureProof("header")
    if sig.public_key is None or sig.public_key != to_bytes(signer):
        raise MissingOrInvalidSignatureProof("pubkey")
    if sig.signature is None or sig.signature != bytes(proof):
        raise MissingOrInvalidSignatureProof("signature")
    if sig.message is None or sig.message != bytes(message):
        raise MissingOrInvalidSignatureProof("message")
