"""AES-256-GCM encryption for integration connection configs.

Supports key versioning for rotation and a plaintext-JSON fallback for
connection rows written before configs were encrypted.
"""

import base64
import json
import logging
import os
from typing import Any

from cryptography.exceptions import InvalidTag
from cryptography.hazmat.primitives.ciphers.aead import AESGCM

from lifecycle_api.config import get_settings

logger = logging.getLogger(__name__)


class EncryptionService:
    """Encrypts and decrypts connection configs using AES-256-GCM.

    Data format:
    - Legacy (v0): nonce (12 bytes) + ciphertext (no prefix)
    - Versioned (v1+): magic (2 bytes) + version (1 byte) + nonce (12 bytes) + ciphertext
    """

    MAGIC_BYTES = b"\xEC\x01"
    MAGIC_SIZE = 2
    NONCE_SIZE = 12  # 96 bits for GCM
    VERSION_SIZE = 1

    def __init__(
        self,
        current_key: str | None = None,
        legacy_keys: list[str] | None = None,
    ) -> None:
        """Initialize encryption service with current key and optional legacy keys.

        Args:
            current_key: Current encryption key (base64-encoded, 32 bytes decoded)
            legacy_keys: List of legacy keys for decryption (oldest to newest)
        """
        if current_key is None or legacy_keys is None:
            settings = get_settings()
            if current_key is None:
                current_key = settings.encryption_key
            if legacy_keys is None:
                legacy_keys = [
                    key.strip() for key in settings.encryption_key_legacy.split(",") if key.strip()
                ]

        self._current_key = self._decode_key(current_key)
        self._current_aesgcm = AESGCM(self._current_key)

        # Oldest to newest, current key last
        self._key_chain: list[bytes] = [self._decode_key(key) for key in legacy_keys]
        self._key_chain.append(self._current_key)

    def _decode_key(self, key: str) -> bytes:
        """Decode and validate a base64-encoded encryption key.

        Raises:
            ValueError: If key is not valid base64 or not 32 bytes
        """
        try:
            padded_key = key + "=" * (4 - len(key) % 4) if len(key) % 4 else key
            decoded = base64.urlsafe_b64decode(padded_key)
        except ValueError as e:
            raise ValueError(f"Invalid base64-encoded encryption key: {type(e).__name__}") from e

        if len(decoded) != 32:
            raise ValueError("Encryption key must be 32 bytes (256 bits)")
        return decoded

    def encrypt(self, data: dict[str, Any]) -> bytes:
        """Encrypt a dictionary with the current key.

        Args:
            data: Dictionary to encrypt

        Returns:
            Encrypted bytes (magic + version + nonce + ciphertext)
        """
        plaintext = json.dumps(data).encode("utf-8")
        nonce = os.urandom(self.NONCE_SIZE)
        ciphertext = self._current_aesgcm.encrypt(nonce, plaintext, None)
        version = len(self._key_chain) - 1
        return self.MAGIC_BYTES + bytes([version]) + nonce + ciphertext

    def _try_decrypt(self, key: bytes, nonce: bytes, ciphertext: bytes) -> dict[str, Any] | None:
        try:
            plaintext = AESGCM(key).decrypt(nonce, ciphertext, None)
            return json.loads(plaintext.decode("utf-8"))
        except (InvalidTag, ValueError):
            return None

    def decrypt(self, encrypted_data: bytes) -> dict[str, Any]:
        """Decrypt bytes to a dictionary, trying every known key.

        Args:
            encrypted_data: Encrypted bytes

        Returns:
            Decrypted dictionary

        Raises:
            ValueError: If decryption fails with all available keys
        """
        if len(encrypted_data) < self.NONCE_SIZE + 1:
            raise ValueError("Invalid encrypted data: too short")

        has_magic = encrypted_data[: self.MAGIC_SIZE] == self.MAGIC_BYTES
        if has_magic:
            header_size = self.MAGIC_SIZE + self.VERSION_SIZE
            version = encrypted_data[self.MAGIC_SIZE]
            nonce = encrypted_data[header_size : header_size + self.NONCE_SIZE]
            ciphertext = encrypted_data[header_size + self.NONCE_SIZE :]
            if version < len(self._key_chain):
                result = self._try_decrypt(self._key_chain[version], nonce, ciphertext)
                if result is not None:
                    return result
            offsets = [header_size]
        else:
            offsets = [1, 0]

        for offset in offsets:
            if len(encrypted_data) < offset + self.NONCE_SIZE + 1:
                continue
            nonce = encrypted_data[offset : offset + self.NONCE_SIZE]
            ciphertext = encrypted_data[offset + self.NONCE_SIZE :]
            for key in reversed(self._key_chain):
                result = self._try_decrypt(key, nonce, ciphertext)
                if result is not None:
                    return result

        raise ValueError("Decryption failed: no valid key found")

    def decrypt_config(self, blob: bytes | str | None) -> dict[str, Any]:
        """Decrypt a stored connection config.

        Falls back to parsing the blob as plaintext JSON for rows written
        before encryption, and to an empty config when neither works so that
        environment-based fallbacks still apply.

        Args:
            blob: Stored config (ciphertext, plaintext JSON, or None)

        Returns:
            Config dictionary (possibly empty)
        """
        if not blob:
            return {}

        raw = blob.encode("utf-8") if isinstance(blob, str) else bytes(blob)
        try:
            return self.decrypt(raw)
        except ValueError:
            pass

        try:
            parsed = json.loads(raw.decode("utf-8"))
        except (UnicodeDecodeError, json.JSONDecodeError):
            logger.warning("Connection config could not be decrypted or parsed, using empty config")
            return {}
        return parsed if isinstance(parsed, dict) else {}


_encryption_service: EncryptionService | None = None


def get_encryption_service() -> EncryptionService:
    """Get or create the encryption service singleton."""
    global _encryption_service
    if _encryption_service is None:
        _encryption_service = EncryptionService()
    return _encryption_service


def reset_encryption_service() -> None:
    """Reset the encryption service singleton (for testing or key rotation)."""
    global _encryption_service
    _encryption_service = None
