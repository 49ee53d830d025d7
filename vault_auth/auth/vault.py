"""Encrypted vault for locally persisted authentication material.

AES-256-GCM with a random key scoped to the browsing session. The key
is exported as a JWK into the session storage area and re-imported on
later calls, so a reload mid-flow can still decrypt the in-flight
artifacts. The key is a device nonce, never derived from user input,
and never leaves the storage area it was written to.
"""

# pylint: disable=logging-too-many-args

from __future__ import annotations

import base64
import binascii
import json
import logging
import os

from typing import TYPE_CHECKING

from cryptography.exceptions import InvalidTag
from cryptography.hazmat.primitives.ciphers.aead import AESGCM

from ..exceptions import DecryptionError


if TYPE_CHECKING:
    from ..storage.base import StorageArea


logger = logging.getLogger("vault_auth.auth")

VAULT_KEY_NAME = "vault_crypto_key"
KEY_BITS = 256
IV_BYTES = 12
TAG_BYTES = 16


def _b64url_encode(raw: bytes) -> str:
    return base64.urlsafe_b64encode(raw).rstrip(b"=").decode("ascii")


def _b64url_decode(text: str) -> bytes:
    return base64.urlsafe_b64decode(text + "=" * (-len(text) % 4))


def _export_jwk(key: bytes) -> str:
    """Export a raw AES key as a JWK JSON string."""
    return json.dumps(
        {
            "kty": "oct",
            "k": _b64url_encode(key),
            "alg": "A256GCM",
            "ext": True,
            "key_ops": ["encrypt", "decrypt"],
        }
    )


def _import_jwk(data: str) -> bytes:
    """Import a raw AES key from a JWK JSON string.

    Raises
    ------
    ValueError
        If the JWK is malformed or not a 256-bit octet key.
    """
    try:
        jwk = json.loads(data)
        key = _b64url_decode(jwk["k"])
    except (json.JSONDecodeError, KeyError, TypeError, binascii.Error) as exc:
        msg = "Stored vault key is malformed"
        raise ValueError(msg) from exc
    if jwk.get("kty") != "oct" or len(key) * 8 != KEY_BITS:
        msg = "Stored vault key is not a 256-bit octet key"
        raise ValueError(msg)
    return key


class EncryptedVault:
    """Symmetric encryption of opaque string payloads.

    Parameters
    ----------
    key_storage : StorageArea
        Session-scoped storage area holding the exported key.
    key_name : str
        Storage key for the exported key (default ``"vault_crypto_key"``).
    """

    def __init__(self, key_storage: StorageArea, key_name: str = VAULT_KEY_NAME) -> None:
        """Initialize the vault."""
        self._storage = key_storage
        self._key_name = key_name

    async def _load_key(self) -> bytes | None:
        data = await self._storage.get(self._key_name)
        if data is None:
            return None
        return _import_jwk(data)

    async def _get_or_create_key(self) -> bytes:
        try:
            key = await self._load_key()
        except ValueError:
            logger.warning("Discarding unreadable vault key; earlier blobs become undecryptable")
            key = None
        if key is not None:
            return key

        key = AESGCM.generate_key(bit_length=KEY_BITS)
        await self._storage.set(self._key_name, _export_jwk(key))
        logger.debug("Generated new session vault key")
        return key

    async def encrypt(self, plaintext: str) -> str:
        """Encrypt a string.

        Parameters
        ----------
        plaintext : str
            The value to protect.

        Returns
        -------
        str
            Base64 of ``iv || ciphertext || tag``. A fresh IV is drawn on
            every call, so equal inputs never produce equal blobs.
        """
        key = await self._get_or_create_key()
        iv = os.urandom(IV_BYTES)
        ciphertext = AESGCM(key).encrypt(iv, plaintext.encode("utf-8"), None)
        return base64.b64encode(iv + ciphertext).decode("ascii")

    async def decrypt(self, blob: str) -> str:
        """Decrypt a blob produced by ``encrypt``.

        Parameters
        ----------
        blob : str
            The encrypted payload.

        Returns
        -------
        str
            The original plaintext.

        Raises
        ------
        DecryptionError
            If the key is missing, the blob is malformed, or
            authentication fails. Never returns partial data.
        """
        try:
            key = await self._load_key()
        except ValueError as exc:
            raise DecryptionError(str(exc)) from exc
        if key is None:
            msg = "No vault key for this session"
            raise DecryptionError(msg)

        try:
            combined = base64.b64decode(blob, validate=True)
        except (binascii.Error, ValueError) as exc:
            msg = "Encrypted payload is not valid base64"
            raise DecryptionError(msg) from exc
        # Only the canonical encoding is accepted, so no character of the blob is ignored
        if base64.b64encode(combined).decode("ascii") != blob:
            msg = "Encrypted payload is not canonically encoded"
            raise DecryptionError(msg)
        if len(combined) < IV_BYTES + TAG_BYTES:
            msg = "Encrypted payload is truncated"
            raise DecryptionError(msg)

        iv, ciphertext = combined[:IV_BYTES], combined[IV_BYTES:]
        try:
            plaintext = AESGCM(key).decrypt(iv, ciphertext, None)
        except InvalidTag as exc:
            msg = "Encrypted payload failed authentication"
            raise DecryptionError(msg) from exc

        try:
            return plaintext.decode("utf-8")
        except UnicodeDecodeError as exc:
            msg = "Decrypted payload is not UTF-8 text"
            raise DecryptionError(msg) from exc

    async def clear_key(self) -> None:
        """Delete the stored key, invalidating every earlier blob."""
        await self._storage.remove(self._key_name)
        logger.debug("Vault key cleared")

    async def has_key(self) -> bool:
        """Check whether a key exists for this session."""
        return await self._storage.contains(self._key_name)
