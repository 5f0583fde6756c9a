"""Encrypted refresh-token storage."""

from __future__ import annotations

import logging
from pathlib import Path

from calendar_scheduler.crypto import Cipher
from calendar_scheduler.exceptions import CredentialCorruptionError
from calendar_scheduler.stores.base import JsonRecordFile

logger = logging.getLogger(__name__)


class TokenStore:
    """Per-user refresh tokens, encrypted at rest.

    File layout::

        {"tokens": [{"user_id": "demo-user", "refresh_token_enc": "<base64>"}]}

    Example:
        >>> store = TokenStore("data/tokens.json", Cipher.from_b64(key))
        >>> store.save("demo-user", "1//refresh-token")
        >>> store.get("demo-user")
        '1//refresh-token'
    """

    def __init__(self, path: str | Path, cipher: Cipher):
        self._file = JsonRecordFile(path, "tokens")
        self._cipher = cipher

    @property
    def path(self) -> Path:
        return self._file.path

    def save(self, user_id: str, refresh_token: str) -> None:
        """Encrypt and store a refresh token, replacing any previous one."""
        encrypted = self._cipher.encrypt(refresh_token)

        def update(record: dict) -> None:
            record["refresh_token_enc"] = encrypted

        self._file.upsert(user_id, update)
        logger.info(f"Refresh token saved for user {user_id}")

    def get(self, user_id: str) -> str | None:
        """Return the decrypted refresh token, or None if absent or unreadable."""
        record = self._file.find(user_id)
        if not record or not record.get("refresh_token_enc"):
            return None

        try:
            return self._cipher.decrypt(record["refresh_token_enc"])
        except CredentialCorruptionError as e:
            logger.warning(f"Stored token for user {user_id} could not be decrypted: {e}")
            return None

    def delete(self, user_id: str) -> bool:
        """Forget a user's refresh token."""
        removed = self._file.remove(user_id)
        if removed:
            logger.info(f"Refresh token removed for user {user_id}")
        return removed

    def user_ids(self) -> list[str]:
        return [r["user_id"] for r in self._file.records() if "user_id" in r]
