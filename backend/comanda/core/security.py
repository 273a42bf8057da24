import base64
import hashlib
import logging
from pathlib import Path
from typing import Callable, Optional

from cryptography.hazmat.primitives import hashes, serialization
from cryptography.hazmat.primitives.asymmetric import padding

logger = logging.getLogger(__name__)

HASHES = {
    "SHA512": hashes.SHA512,
    "SHA256": hashes.SHA256,
    "SHA1": hashes.SHA1,
}

CertificateProvider = Callable[[], str]
SignatureProvider = Callable[[str, str], str]


def body_digest(body: bytes) -> str:
    return hashlib.sha256(body or b"").hexdigest()


def canonical_request(method: str, path: str, timestamp: str, body: bytes) -> str:
    # mismo formato que verifica el print agent
    return "\n".join([method.upper(), path, timestamp, body_digest(body)])


def sign(payload: str, private_key, algorithm: str = "SHA512") -> str:
    hash_cls = HASHES[algorithm.upper()]
    signature = private_key.sign(payload.encode("utf-8"), padding.PKCS1v15(), hash_cls())
    return base64.b64encode(signature).decode("ascii")


def load_private_key(path: str, password: Optional[bytes] = None):
    data = Path(path).read_bytes()
    return serialization.load_pem_private_key(data, password=password)


# ============================
# Hooks para el cliente del agente
# ============================
def certificate_provider(cert_path: str) -> CertificateProvider:
    """Hook returning the PEM certificate; empty string when none is configured."""

    def _provide() -> str:
        if not cert_path:
            return ""
        return Path(cert_path).read_text(encoding="utf-8")

    return _provide


def signature_provider(key_path: str, password: Optional[bytes] = None) -> SignatureProvider:
    """Hook signing on demand. The key is only read the first time it is needed.

    Without a key every signature is empty, which only an agent running in
    unsigned (development) mode accepts.
    """
    cache = {}

    def _sign(payload: str, algorithm: str) -> str:
        if not key_path:
            return ""
        if "key" not in cache:
            cache["key"] = load_private_key(key_path, password)
            logger.debug("Loaded print agent signing key from %s", key_path)
        return sign(payload, cache["key"], algorithm)

    return _sign
