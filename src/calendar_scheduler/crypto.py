"""AES-256-GCM encryption for stored credentials.

Blobs are base64 text laid out as ``nonce (12) || tag (16) || ciphertext``.
"""

from __future__ import annotations

import base64
import binascii
import secrets

from cryptography.exceptions import InvalidTag
from cryptography.hazmat.primitives.ciphers.aead import AESGCM

from calendar_scheduler.exceptions import CipherKeyError, CredentialCorruptionError

KEY_SIZE = 32
NONCE_SIZE = 12  # 96-bit nonce for GCM
TAG_SIZE = 16


class Cipher:
    """Authenticated encryption of single string values.

    Example:
        >>> cipher = Cipher.from_b64(os.environ["ENCRYPTION_KEY"])
        >>> blob = cipher.encrypt("1//refresh-token")
        >>> cipher.decrypt(blob)
        '1//refresh-token'
    """

    def __init__(self, key: bytes):
        if len(key) != KEY_SIZE:
            raise CipherKeyError(len(key))
        self._aesgcm = AESGCM(key)

    @classmethod
    def from_b64(cls, key_b64: str) -> Cipher:
        """Create a cipher from a base64-encoded key."""
        try:
            key = base64.b64decode(key_b64, validate=True)
        except (binascii.Error, ValueError) as e:
            raise CredentialCorruptionError(f"Encryption key is not valid base64: {e}") from e
        return cls(key)

    def encrypt(self, plaintext: str) -> str:
        nonce = secrets.token_bytes(NONCE_SIZE)
        sealed = self._aesgcm.encrypt(nonce, plaintext.encode("utf-8"), None)
        # AESGCM appends the tag; store it ahead of the ciphertext
        ciphertext, tag = sealed[:-TAG_SIZE], sealed[-TAG_SIZE:]
        return base64.b64encode(nonce + tag + ciphertext).decode("ascii")

    def decrypt(self, blob: str) -> str:
        """Decrypt a blob produced by :meth:`encrypt`.

        Raises:
            CredentialCorruptionError: If the blob is malformed, was produced
                under another key, or has been tampered with.
        """
        try:
            payload = base64.b64decode(blob, validate=True)
        except (binascii.Error, ValueError) as e:
            raise CredentialCorruptionError(f"Encrypted payload is not valid base64: {e}") from e

        if len(payload) < NONCE_SIZE + TAG_SIZE:
            raise CredentialCorruptionError("Encrypted payload is truncated")

        nonce = payload[:NONCE_SIZE]
        tag = payload[NONCE_SIZE : NONCE_SIZE + TAG_SIZE]
        ciphertext = payload[NONCE_SIZE + TAG_SIZE :]

        try:
            plaintext = self._aesgcm.decrypt(nonce, ciphertext + tag, None)
        except InvalidTag as e:
            raise CredentialCorruptionError("Encrypted payload failed authentication") from e

        try:
            return plaintext.decode("utf-8")
        except UnicodeDecodeError as e:
            raise CredentialCorruptionError("Decrypted payload is not valid UTF-8") from e
