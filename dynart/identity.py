# dynart/identity.py
"""
Identity references and key-backed accounts.

An identity is a lowercase hex address ("0x" + 40 hex digits). The all-zero
address is the null identity: it never owns anything and is the "from" side
of a mint notification.

An Account is an identity with an RSA key pair. Its address is derived from
the public key, so anyone holding the public key can check which identity
signed a request:

    address = "0x" + sha3_256(DER(public_key))[-20:].hex()
"""

import base64
import hashlib
import json
import os
import re
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Dict, Optional

from cryptography.exceptions import InvalidSignature
from cryptography.hazmat.primitives import hashes, serialization
from cryptography.hazmat.primitives.asymmetric import padding, rsa

NULL_ADDRESS = "0x" + "0" * 40

_ADDRESS_RE = re.compile(r"^0x[0-9a-f]{40}$")


def normalize_address(value: Optional[str]) -> str:
    """
    Return the canonical form of an identity reference.

    None and empty text map to the null identity.

    Raises:
        ValueError: If the value is not a 20-byte hex address
    """
    if not value:
        return NULL_ADDRESS
    if not isinstance(value, str):
        raise ValueError(f"Identity must be a hex string, got {type(value).__name__}")
    address = value.lower()
    if not address.startswith("0x"):
        address = f"0x{address}"
    if not _ADDRESS_RE.match(address):
        raise ValueError(f"Invalid identity: {value!r}")
    return address


def is_null(value: Optional[str]) -> bool:
    """True for the null identity in any of its spellings."""
    return normalize_address(value) == NULL_ADDRESS


def address_bytes(value: str) -> bytes:
    """The 20 raw bytes of an identity."""
    return bytes.fromhex(normalize_address(value)[2:])


def _canonicalize(data: Dict[str, Any]) -> bytes:
    """Sorted keys, no whitespace."""
    return json.dumps(data, sort_keys=True, separators=(",", ":")).encode("utf-8")


def address_from_public_key(public_key_pem: bytes) -> str:
    """Derive the identity of a PEM-encoded public key."""
    public_key = serialization.load_pem_public_key(public_key_pem)
    der = public_key.public_bytes(
        encoding=serialization.Encoding.DER,
        format=serialization.PublicFormat.SubjectPublicKeyInfo,
    )
    return "0x" + hashlib.sha3_256(der).digest()[-20:].hex()


def verify_signature(public_key_pem: bytes, payload: Dict[str, Any], signature: str) -> bool:
    """
    Verify a payload signature made by Account.sign().

    Args:
        public_key_pem: PEM-encoded public key of the claimed signer
        payload: The signed JSON payload
        signature: Base64 signature value

    Returns:
        True if the signature is valid
    """
    try:
        public_key = serialization.load_pem_public_key(public_key_pem)
        public_key.verify(
            base64.b64decode(signature),
            _canonicalize(payload),
            padding.PKCS1v15(),
            hashes.SHA256(),
        )
        return True
    except (InvalidSignature, ValueError, TypeError):
        return False


@dataclass
class Account:
    """
    An identity with an RSA key pair.

    Attributes:
        public_key: PEM-encoded public key
        private_key: PEM-encoded private key (kept secret)
    """
    public_key: bytes
    private_key: bytes

    @property
    def address(self) -> str:
        """Identity reference derived from the public key."""
        return address_from_public_key(self.public_key)

    @classmethod
    def create(cls) -> "Account":
        """Create an account with a fresh RSA-2048 key pair."""
        private_key = rsa.generate_private_key(
            public_exponent=65537,
            key_size=2048,
        )
        return cls._from_private_key(private_key)

    @classmethod
    def _from_private_key(cls, private_key) -> "Account":
        private_pem = private_key.private_bytes(
            encoding=serialization.Encoding.PEM,
            format=serialization.PrivateFormat.PKCS8,
            encryption_algorithm=serialization.NoEncryption(),
        )
        public_pem = private_key.public_key().public_bytes(
            encoding=serialization.Encoding.PEM,
            format=serialization.PublicFormat.SubjectPublicKeyInfo,
        )
        return cls(public_key=public_pem, private_key=private_pem)

    def sign(self, payload: Dict[str, Any]) -> str:
        """Sign a JSON payload, returning the base64 signature."""
        private_key = serialization.load_pem_private_key(
            self.private_key,
            password=None,
        )
        signature = private_key.sign(
            _canonicalize(payload),
            padding.PKCS1v15(),
            hashes.SHA256(),
        )
        return base64.b64encode(signature).decode("utf-8")

    def save(self, path: Path | str) -> Path:
        """Write the private key to a PEM file readable only by the owner."""
        path = Path(path)
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_bytes(self.private_key)
        os.chmod(path, 0o600)
        return path

    @classmethod
    def load(cls, path: Path | str) -> "Account":
        """Load an account from a private key PEM file."""
        path = Path(path)
        if not path.exists():
            raise FileNotFoundError(f"Key file not found: {path}")
        private_key = serialization.load_pem_private_key(path.read_bytes(), password=None)
        return cls._from_private_key(private_key)
