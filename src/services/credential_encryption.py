"""AES-256-GCM encryption for secrets stored in the state database.

Channel API credentials, OAuth access tokens, webhook secrets and courier
account credentials are stored as versioned JSON envelopes. Each envelope
is bound (via AAD) to the row and field it belongs to, so a ciphertext
copied into another row fails to decrypt.

Key source precedence:
    1. SHIPSYNC_CREDENTIAL_KEY env var (base64-encoded 32-byte key)
    2. SHIPSYNC_CREDENTIAL_KEY_FILE env var (path to raw key file)
    3. platformdirs local file (auto-generated on first use)
"""

import base64
import binascii
import json
import logging
import os
import stat

from cryptography.exceptions import InvalidTag
from cryptography.hazmat.primitives.ciphers.aead import AESGCM

logger = logging.getLogger(__name__)

KEY_FILENAME = ".shipsync_key"
_CURRENT_VERSION = 1
_ALGORITHM = "AES-256-GCM"
_REQUIRED_KEY_LENGTH = 32
_NONCE_LENGTH = 12


class CredentialDecryptionError(Exception):
    """Raised when an envelope cannot be decrypted for any reason."""


def get_default_key_dir() -> str:
    """Return the per-user app-data directory used for the key file."""
    from platformdirs import user_data_dir

    return user_data_dir("shipsync", ensure_exists=True)


def _check_length(key: bytes, source: str) -> bytes:
    if len(key) != _REQUIRED_KEY_LENGTH:
        raise ValueError(
            f"{source} has invalid length {len(key)} (expected {_REQUIRED_KEY_LENGTH})"
        )
    return key


def get_or_create_key(key_dir: str | None = None) -> bytes:
    """Load or generate the 32-byte AES-256 key.

    Args:
        key_dir: Directory for the generated key file. Defaults to platformdirs.

    Raises:
        ValueError: If a configured key is not valid base64 or not 32 bytes.
    """
    env_key = os.environ.get("SHIPSYNC_CREDENTIAL_KEY", "").strip()
    if env_key:
        try:
            key = base64.b64decode(env_key, validate=True)
        except binascii.Error as e:
            raise ValueError(f"SHIPSYNC_CREDENTIAL_KEY contains invalid base64: {e}") from e
        return _check_length(key, "SHIPSYNC_CREDENTIAL_KEY")

    env_key_file = os.environ.get("SHIPSYNC_CREDENTIAL_KEY_FILE", "").strip()
    if env_key_file:
        if not os.path.isfile(env_key_file) or os.path.islink(env_key_file):
            raise ValueError(
                f"SHIPSYNC_CREDENTIAL_KEY_FILE must be a regular file: {env_key_file}"
            )
        with open(env_key_file, "rb") as f:
            return _check_length(f.read(), f"Key file {env_key_file}")

    directory = key_dir or get_default_key_dir()
    os.makedirs(directory, exist_ok=True)
    key_path = os.path.join(directory, KEY_FILENAME)

    if not os.path.exists(key_path):
        try:
            fd = os.open(key_path, os.O_WRONLY | os.O_CREAT | os.O_EXCL, 0o600)
        except FileExistsError:
            # Another process created it between the check and the open.
            pass
        else:
            key = os.urandom(_REQUIRED_KEY_LENGTH)
            try:
                os.write(fd, key)
            finally:
                os.close(fd)
            logger.info("Generated new encryption key at %s", key_path)
            return key

    with open(key_path, "rb") as f:
        key = f.read()
    mode = stat.S_IMODE(os.stat(key_path).st_mode)
    if mode & (stat.S_IRWXG | stat.S_IRWXO):
        logger.warning("Key file %s has permissions %o, expected 600", key_path, mode)
    return _check_length(key, f"Key file {key_path}")


def encrypt_credentials(credentials: dict, key: bytes, aad: str = "") -> str:
    """Encrypt a dict into a JSON envelope ``{"v", "alg", "nonce", "ct"}``.

    Raises:
        ValueError: If key is not exactly 32 bytes.
    """
    _check_length(key, "Encryption key")
    nonce = os.urandom(_NONCE_LENGTH)
    plaintext = json.dumps(credentials, sort_keys=True).encode("utf-8")
    ciphertext = AESGCM(key).encrypt(nonce, plaintext, aad.encode("utf-8") if aad else None)
    return json.dumps({
        "v": _CURRENT_VERSION,
        "alg": _ALGORITHM,
        "nonce": base64.b64encode(nonce).decode("ascii"),
        "ct": base64.b64encode(ciphertext).decode("ascii"),
    })


def decrypt_credentials(encrypted: str, key: bytes, aad: str = "") -> dict:
    """Decrypt an envelope produced by encrypt_credentials.

    Raises:
        CredentialDecryptionError: On a wrong key, wrong AAD, tampering or a
            malformed envelope.
    """
    if len(key) != _REQUIRED_KEY_LENGTH:
        raise CredentialDecryptionError(
            f"Decryption key must be exactly {_REQUIRED_KEY_LENGTH} bytes (got {len(key)})"
        )
    try:
        envelope = json.loads(encrypted)
    except (json.JSONDecodeError, TypeError) as e:
        raise CredentialDecryptionError(f"Invalid envelope format: {e}") from e
    if not isinstance(envelope, dict):
        raise CredentialDecryptionError("Envelope is not a JSON object")
    if envelope.get("v") != _CURRENT_VERSION or envelope.get("alg") != _ALGORITHM:
        raise CredentialDecryptionError(
            f"Unsupported envelope v={envelope.get('v')!r} alg={envelope.get('alg')!r}"
        )

    try:
        nonce = base64.b64decode(envelope["nonce"], validate=True)
        ciphertext = base64.b64decode(envelope["ct"], validate=True)
    except (KeyError, TypeError, binascii.Error) as e:
        raise CredentialDecryptionError(f"Malformed envelope fields: {e}") from e
    if len(nonce) != _NONCE_LENGTH:
        raise CredentialDecryptionError(f"Invalid nonce length {len(nonce)}")

    try:
        plaintext = AESGCM(key).decrypt(nonce, ciphertext, aad.encode("utf-8") if aad else None)
    except InvalidTag as e:
        raise CredentialDecryptionError("Decryption failed: authentication tag mismatch") from e
    try:
        result = json.loads(plaintext.decode("utf-8"))
    except (UnicodeDecodeError, json.JSONDecodeError) as e:
        raise CredentialDecryptionError(f"Decrypted payload is not JSON: {e}") from e
    if not isinstance(result, dict):
        raise CredentialDecryptionError(
            f"Decrypted payload is not a dict (got {type(result).__name__})"
        )
    return result


def encrypt_secret(value: str, key: bytes, aad: str) -> str:
    """Encrypt a single secret string (token, signing secret)."""
    return encrypt_credentials({"value": value}, key, aad)


def decrypt_secret(encrypted: str, key: bytes, aad: str) -> str:
    """Decrypt a secret written by encrypt_secret.

    Raises:
        CredentialDecryptionError: If the envelope is invalid or has no value.
    """
    value = decrypt_credentials(encrypted, key, aad).get("value")
    if not isinstance(value, str):
        raise CredentialDecryptionError("Secret envelope has no value")
    return value


def field_aad(table: str, row_id: str, field: str) -> str:
    """AAD string binding an envelope to one column of one row."""
    return f"{table}:{row_id}:{field}"
