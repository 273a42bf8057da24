import base64

from cryptography.hazmat.primitives import hashes, serialization
from cryptography.hazmat.primitives.asymmetric import padding, rsa

from comanda.core.security import canonical_request, certificate_provider, signature_provider


def test_canonical_request_layout():
    payload = canonical_request("post", "/print", "1700000000", b"{}")
    method, path, ts, digest = payload.split("\n")
    assert (method, path, ts) == ("POST", "/print", "1700000000")
    assert digest == "44136fa355b3678a1146ad16f7e8649e94fb4fc21fe77e8310c060f61caaff8a"


def test_hooks_without_files_return_empty():
    assert certificate_provider("")() == ""
    assert signature_provider("")("payload", "SHA512") == ""


def test_signature_provider_signs_with_key_file(tmp_path):
    key = rsa.generate_private_key(public_exponent=65537, key_size=2048)
    path = tmp_path / "client.key"
    path.write_bytes(
        key.private_bytes(
            serialization.Encoding.PEM,
            serialization.PrivateFormat.PKCS8,
            serialization.NoEncryption(),
        )
    )
    (tmp_path / "client.pem").write_text("CERT")

    signature = signature_provider(str(path))("hello", "SHA256")

    key.public_key().verify(base64.b64decode(signature), b"hello", padding.PKCS1v15(), hashes.SHA256())
    assert certificate_provider(str(tmp_path / "client.pem"))() == "CERT"
