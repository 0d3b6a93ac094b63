import json
import logging
import time
from pathlib import Path
from typing import Any
from urllib.parse import urlsplit, urlunsplit

from authlib.common.security import generate_token
from authlib.jose import JsonWebKey, Key, jwt
from authlib.oauth2.rfc7636 import create_s256_code_challenge

from src.errors import KeyLoadError, SigningError

from .keys import KeyPair, PrivateKeyLoader, generate_key_pair, load_key_pair, load_private_key

logger = logging.getLogger(__name__)

DPOP_ALGORITHM = "RS256"
DPOP_KEY_SIZE = 2048


class DPoPKeyManager:
    """Holds the process-wide DPoP RSA key and signs proofs with it.

    The key is fixed once the manager is built. Proof generation keeps no state
    between calls, so a single manager is shared read-only by every request.
    """

    key_pair: KeyPair
    jwk: Key
    generated: bool

    def __init__(self, key_pair: KeyPair, generated: bool = False):
        self.key_pair = key_pair
        self.jwk = JsonWebKey.import_key(key_pair.private_key, {"kty": "RSA"})
        self.generated = generated

    @classmethod
    def load(
        cls,
        private_key_path: str | Path,
        public_key_path: str | Path,
        private_key_loader: PrivateKeyLoader = load_private_key,
    ) -> "DPoPKeyManager":
        """Loads the key files, or falls back to an in-memory key if that fails.

        The fallback key only lives as long as the process: after a restart the
        thumbprint changes and tokens bound to the old key stop working.
        """

        try:
            key_pair = load_key_pair(private_key_path, public_key_path, private_key_loader)
        except KeyLoadError as exception:
            logger.warning(f"failed to load DPoP key pair, generating a new one: {exception}")
            manager = cls.generate()
        else:
            manager = cls(key_pair)
            logger.info(f"DPoP key pair loaded, thumbprint={manager.thumbprint()}")
        return manager

    @classmethod
    def generate(cls, key_size: int = DPOP_KEY_SIZE) -> "DPoPKeyManager":
        manager = cls(generate_key_pair(key_size), generated=True)
        logger.info(f"new DPoP key pair generated, thumbprint={manager.thumbprint()}")
        return manager

    def public_jwk(self) -> dict[str, Any]:
        return json.loads(self.jwk.as_json(is_private=False))

    def thumbprint(self) -> str:
        """RFC 7638 SHA-256 thumbprint of the public key."""

        return self.jwk.thumbprint()

    def generate_dpop(self, method: str, url: str, access_token: str | None = None) -> str:
        """Signs a fresh proof for one request.

        `access_token` is only given when calling a resource server; it adds the
        `ath` claim binding the proof to that token.
        """

        body: dict[str, Any] = {
            "htm": method,
            "htu": _strip_query(url),
            "iat": int(time.time()),
            "jti": generate_token(),
        }
        if access_token:
            # PKCE S256 is same as DPoP ath hashing
            body["ath"] = create_s256_code_challenge(access_token)

        header = {"typ": "dpop+jwt", "alg": DPOP_ALGORITHM, "jwk": self.public_jwk()}
        try:
            dpop_proof = jwt.encode(header, body, self.jwk).decode("utf-8")
        except Exception as exception:
            raise SigningError(f"unable to sign DPoP proof: {exception}") from exception
        return dpop_proof


# htu carries no query or fragment (RFC 9449 section 4.2)
def _strip_query(url: str) -> str:
    return urlunsplit(urlsplit(url)._replace(query="", fragment=""))
