# dice_escrow/keys.py
# Ed25519 identities: algosdk account format (base64 private key, base32 address).
import base64

from algosdk import account, encoding
from nacl.signing import SigningKey


class Keypair:
    """A signing identity. `address` is the public key in Algorand base32 form."""

    def __init__(self, private_key: str):
        self.private_key = private_key
        raw = base64.b64decode(private_key)
        self._signing_key = SigningKey(raw[:32])
        self.address = account.address_from_private_key(private_key)

    @classmethod
    def generate(cls) -> "Keypair":
        sk, _addr = account.generate_account()
        return cls(sk)

    @classmethod
    def from_seed(cls, seed: bytes) -> "Keypair":
        if len(seed) != 32:
            raise ValueError(f"seed must be 32 bytes, got {len(seed)}")
        signing_key = SigningKey(seed)
        raw = seed + bytes(signing_key.verify_key)
        return cls(base64.b64encode(raw).decode())

    @property
    def public_key(self) -> bytes:
        return encoding.decode_address(self.address)

    def sign(self, message: bytes) -> bytes:
        """Detached Ed25519 signature (deterministic for a given key and message)."""
        return self._signing_key.sign(message).signature

    def __repr__(self):
        return f"Keypair({self.address})"
