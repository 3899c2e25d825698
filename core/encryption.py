"""
Session payload decryption.

Stored payloads use AES-256-GCM serialized as ``ivHex:authTagHex:cipherHex``.
The key is the first 32 characters of ENCRYPTION_KEY, right-padded with "0".
"""

import json
import logging
import os
from typing import Any, Dict, Optional

from cryptography.exceptions import InvalidTag
from cryptography.hazmat.primitives.ciphers.aead import AESGCM

from core.errors import SessionDecryptionError

logger = logging.getLogger(__name__)

KEY_LENGTH = 32
IV_LENGTH = 16


def derive_key(secret: str) -> bytes:
    if not secret:
        raise SessionDecryptionError("ENCRYPTION_KEY is not configured")
    return secret[:KEY_LENGTH].ljust(KEY_LENGTH, "0").encode("utf-8")[:KEY_LENGTH]


def encrypt(plaintext: str, secret: str, iv: Optional[bytes] = None) -> str:
    """Encrypt text into the ``iv:tag:cipher`` hex envelope."""
    iv = iv or os.urandom(IV_LENGTH)
    sealed = AESGCM(derive_key(secret)).encrypt(iv, plaintext.encode("utf-8"), None)
    # cryptography appends the 16-byte tag to the ciphertext
    cipher, tag = sealed[:-16], sealed[-16:]
    return f"{iv.hex()}:{tag.hex()}:{cipher.hex()}"


def decrypt(envelope: str, secret: str) -> str:
    """Decrypt an ``iv:tag:cipher`` hex envelope back to text."""
    parts = (envelope or "").strip().split(":")
    if len(parts) != 3:
        raise SessionDecryptionError("Invalid encrypted payload format")
    try:
        iv, tag, cipher = (bytes.fromhex(p) for p in parts)
    except ValueError as e:
        raise SessionDecryptionError(f"Invalid encrypted payload encoding: {e}") from e

    try:
        plain = AESGCM(derive_key(secret)).decrypt(iv, cipher + tag, None)
    except (InvalidTag, ValueError) as e:
        raise SessionDecryptionError("Session payload failed authentication") from e
    return plain.decode("utf-8")


def load_session_payload(raw: Any, secret: Optional[str]) -> Dict[str, Any]:
    """
    Turn a stored session payload into a dict.

    Accepts an already-decoded dict, a plain JSON string, or an encrypted
    envelope.
    """
    if isinstance(raw, dict):
        return raw
    if not raw or not isinstance(raw, str):
        raise SessionDecryptionError("Session payload is empty")

    text = raw.strip()
    if not text.startswith("{"):
        text = decrypt(text, secret or "")

    try:
        data = json.loads(text)
    except ValueError as e:
        raise SessionDecryptionError(f"Session payload is not valid JSON: {e}") from e
    if not isinstance(data, dict):
        raise SessionDecryptionError("Session payload must be a JSON object")
    return data
