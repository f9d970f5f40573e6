"""Platform JWS signer for outgoing escrow calls."""

from __future__ import annotations

import base64
import json
from pathlib import Path
from typing import Any

from cryptography.hazmat.primitives.asymmetric.ed25519 import Ed25519PrivateKey
from cryptography.hazmat.primitives.serialization import load_pem_private_key
from joserfc import jws
from joserfc.jwk import OKPKey


def _b64url(raw: bytes) -> str:
    return base64.urlsafe_b64encode(raw).rstrip(b"=").decode()


class PlatformSigner:
    """Create EdDSA compact JWS tokens with the platform private key."""

    def __init__(self, private_key: Ed25519PrivateKey, platform_agent_id: str) -> None:
        self._agent_id = platform_agent_id
        jwk_dict: dict[str, str | list[str]] = {
            "kty": "OKP",
            "crv": "Ed25519",
            "d": _b64url(private_key.private_bytes_raw()),
            "x": _b64url(private_key.public_key().public_bytes_raw()),
        }
        self._key = OKPKey.import_key(jwk_dict)

    @classmethod
    def from_key_file(cls, private_key_path: str, platform_agent_id: str) -> PlatformSigner:
        """Load a PEM or raw 32-byte Ed25519 private key from disk."""
        key_data = Path(private_key_path).read_bytes()
        try:
            loaded = load_pem_private_key(key_data, password=None)
        except ValueError:
            return cls(Ed25519PrivateKey.from_private_bytes(key_data), platform_agent_id)
        if not isinstance(loaded, Ed25519PrivateKey):
            msg = "Platform private key must be an Ed25519 private key"
            raise ValueError(msg)
        return cls(loaded, platform_agent_id)

    @property
    def agent_id(self) -> str:
        return self._agent_id

    def sign(self, payload: dict[str, Any]) -> str:
        """Sign payload and return compact JWS token."""
        protected = {"alg": "EdDSA", "kid": self._agent_id}
        payload_bytes = json.dumps(payload, separators=(",", ":"), sort_keys=True).encode()
        return jws.serialize_compact(protected, payload_bytes, self._key, algorithms=["EdDSA"])
