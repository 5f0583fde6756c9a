"""PKCE verifier and challenge generation (RFC 7636, S256)."""

import base64
import hashlib
import secrets

MIN_VERIFIER_LENGTH = 43
MAX_VERIFIER_LENGTH = 128


def _b64url(data: bytes) -> str:
    return base64.urlsafe_b64encode(data).rstrip(b"=").decode("ascii")


def generate_verifier(length: int = 64) -> str:
    """Generate a code verifier from ``length`` random bytes.

    Args:
        length: Number of random bytes. The encoded verifier must be 43-128
            characters, so valid values are 32 through 96.

    Returns:
        URL-safe base64 verifier without padding.
    """
    encoded_length = (length * 4 + 2) // 3
    if not MIN_VERIFIER_LENGTH <= encoded_length <= MAX_VERIFIER_LENGTH:
        raise ValueError(
            f"Verifier of {length} bytes encodes to {encoded_length} characters; "
            f"must be {MIN_VERIFIER_LENGTH}-{MAX_VERIFIER_LENGTH}"
        )
    return _b64url(secrets.token_bytes(length))


def challenge_from_verifier(verifier: str) -> str:
    """Derive the S256 code challenge for a verifier."""
    return _b64url(hashlib.sha256(verifier.encode("ascii")).digest())
