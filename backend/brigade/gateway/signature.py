"""
Webhook HMAC signatures.

GitHub signs the raw request body with the project's shared secret and
sends ``X-Hub-Signature: sha1=<hex>`` (and, on newer deliveries,
``X-Hub-Signature-256: sha256=<hex>``). Comparison is constant-time.
"""

import hashlib
import hmac

from .errors import SignatureError

SUPPORTED_ALGORITHMS = {
    "sha1": hashlib.sha1,
    "sha256": hashlib.sha256,
}


def compute_signature(body: bytes, secret: str, algorithm: str = "sha1") -> str:
    """
    Compute the signature header value for a body.

    Returns:
        "<algorithm>=<hex digest>"
    """
    digestmod = SUPPORTED_ALGORITHMS[algorithm]
    digest = hmac.new(secret.encode("utf-8"), body, digestmod).hexdigest()
    return f"{algorithm}={digest}"


def verify_signature(body: bytes, header: str, secret: str) -> None:
    """
    Verify a signature header against the raw body.

    Args:
        body: Raw request body, exactly as received
        header: Signature header value, "sha1=<hex>" or "sha256=<hex>"
        secret: The project's shared secret

    Raises:
        SignatureError: If the header is missing, malformed, uses an
            unsupported algorithm, or does not match
    """
    if not secret:
        raise SignatureError("project has no shared secret")
    if not header:
        raise SignatureError("missing signature header")

    header = header.strip()
    algorithm, sep, _ = header.partition("=")
    if not sep or algorithm not in SUPPORTED_ALGORITHMS:
        raise SignatureError("unsupported signature format")

    expected = compute_signature(body, secret, algorithm)
    if not hmac.compare_digest(expected.encode("utf-8"), header.encode("utf-8")):
        raise SignatureError("signature mismatch")
