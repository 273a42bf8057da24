"""Signed-challenge handshake and per-request signatures.

1. ``GET /handshake`` hands out a one-time challenge and the accepted
   signature algorithms.
2. ``POST /session`` carries the client certificate plus its signature of
   the challenge. A trusted certificate with a valid signature gets a
   session token.
3. Every later request carries the token and a signature of
   ``METHOD\\nPATH\\nTIMESTAMP\\nsha256(body)`` made with the same key.

With ``ALLOW_UNSIGNED`` an empty certificate and empty signatures are
accepted (development setups without a key pair).
"""
import base64
import binascii
import hashlib
import logging
import secrets
import threading
import time
from datetime import datetime, timedelta, timezone
from pathlib import Path
from typing import Dict, Optional, Set

from cryptography import x509
from cryptography.exceptions import InvalidSignature
from cryptography.hazmat.primitives import hashes
from cryptography.hazmat.primitives.asymmetric import padding
from fastapi import Header, HTTPException, Request
from jose import JWTError, jwt

from print_agent import env

logger = logging.getLogger("print_agent")

ALGORITHMS = {
    "SHA512": hashes.SHA512,
    "SHA256": hashes.SHA256,
    "SHA1": hashes.SHA1,
}
TOKEN_ALGORITHM = "HS256"
UNSIGNED = "unsigned"

_lock = threading.Lock()
_challenges: Dict[str, float] = {}   # challenge -> expira
_sessions: Dict[str, dict] = {}      # fingerprint -> sesión


def reset_state():
    with _lock:
        _challenges.clear()
        _sessions.clear()


# -----------------------------
# Firmas
# -----------------------------
def canonical_request(method: str, path: str, timestamp: str, body: bytes) -> str:
    digest = hashlib.sha256(body or b"").hexdigest()
    return "\n".join([method.upper(), path, timestamp, digest])


def fingerprint(cert: x509.Certificate) -> str:
    return cert.fingerprint(hashes.SHA256()).hex()


def verify_signature(cert: x509.Certificate, payload: str, signature_b64: str, algorithm: str) -> bool:
    try:
        signature = base64.b64decode(signature_b64, validate=True)
        cert.public_key().verify(
            signature, payload.encode("utf-8"), padding.PKCS1v15(), ALGORITHMS[algorithm]()
        )
    except (InvalidSignature, binascii.Error, ValueError, KeyError):
        return False
    return True


def trusted_fingerprints() -> Set[str]:
    base = Path(env.TRUSTED_CERTS_DIR)
    if not base.is_dir():
        return set()
    found = set()
    for path in sorted(base.iterdir()):
        if path.suffix.lower() not in (".pem", ".crt"):
            continue
        try:
            found.add(fingerprint(x509.load_pem_x509_certificate(path.read_bytes())))
        except ValueError as e:
            logger.warning("Skipping unreadable certificate %s: %s", path, e)
    return found


# -----------------------------
# Handshake
# -----------------------------
def issue_challenge() -> str:
    challenge = secrets.token_urlsafe(32)
    now = time.time()
    with _lock:
        for c, expires in list(_challenges.items()):
            if expires < now:
                del _challenges[c]
        _challenges[challenge] = now + env.CHALLENGE_TTL_SECONDS
    return challenge


def _consume_challenge(challenge: str) -> bool:
    with _lock:
        expires = _challenges.pop(challenge, None)
    return expires is not None and expires >= time.time()


def _issue_token(subject: str, algorithm: str) -> str:
    expire = datetime.now(timezone.utc) + timedelta(minutes=env.SESSION_TTL_MINUTES)
    return jwt.encode({"sub": subject, "sig": algorithm, "exp": expire}, env.AGENT_SECRET, algorithm=TOKEN_ALGORITHM)


def open_session(certificate: str, algorithm: str, challenge: str, signature: str) -> str:
    algorithm = (algorithm or "").upper()
    if algorithm not in ALGORITHMS:
        raise HTTPException(400, f"Unsupported signature algorithm: {algorithm}")
    if not _consume_challenge(challenge):
        raise HTTPException(401, "Unknown or expired challenge")

    cert: Optional[x509.Certificate] = None
    if not certificate.strip():
        if not env.ALLOW_UNSIGNED:
            raise HTTPException(401, "Certificate required")
        subject = UNSIGNED
    else:
        try:
            cert = x509.load_pem_x509_certificate(certificate.encode("utf-8"))
        except ValueError:
            raise HTTPException(400, "Invalid certificate")
        subject = fingerprint(cert)
        if subject not in trusted_fingerprints() and not env.ALLOW_UNSIGNED:
            raise HTTPException(403, "Certificate not trusted")
        if not verify_signature(cert, challenge, signature, algorithm):
            raise HTTPException(401, "Invalid challenge signature")

    with _lock:
        current = _sessions.get(subject)
        # ya conectado: se devuelve la misma sesión
        if current and current["algorithm"] == algorithm and current["expires"] > time.time():
            return current["token"]
        token = _issue_token(subject, algorithm)
        _sessions[subject] = {
            "token": token,
            "certificate": cert,
            "algorithm": algorithm,
            "expires": time.time() + env.SESSION_TTL_MINUTES * 60,
        }
    return token


# -----------------------------
# Dependencia FastAPI
# -----------------------------
async def verify_request(
    request: Request,
    authorization: Optional[str] = Header(None),
    x_timestamp: Optional[str] = Header(None),
    x_signature: str = Header(""),
):
    if not authorization or not authorization.startswith("Bearer "):
        raise HTTPException(status_code=401, detail="Missing session token")

    token = authorization.split(" ", 1)[1].strip()
    try:
        claims = jwt.decode(token, env.AGENT_SECRET, algorithms=[TOKEN_ALGORITHM])
    except JWTError:
        raise HTTPException(status_code=401, detail="Invalid or expired session")

    with _lock:
        session = _sessions.get(claims.get("sub"))
    if not session or session["token"] != token:
        raise HTTPException(status_code=401, detail="Session not found")

    cert = session["certificate"]
    if cert is None:
        return  # sesión sin firma (modo desarrollo)

    try:
        skew = abs(time.time() - int(x_timestamp or ""))
    except ValueError:
        raise HTTPException(status_code=401, detail="Missing request timestamp")
    if skew > env.SIGNATURE_MAX_SKEW:
        raise HTTPException(status_code=401, detail="Request timestamp out of range")

    body = await request.body()
    payload = canonical_request(request.method, request.url.path, x_timestamp, body)
    if not verify_signature(cert, payload, x_signature, session["algorithm"]):
        raise HTTPException(status_code=401, detail="Invalid request signature")
