"""
Wallet Crypto - Key wrapping and key-pair helpers.

Two schemes live here:
- Key wrap (wallet records, address book entries): scrypt key derivation
  salted with the record's random 16-byte IV, AES-256-CBC with PKCS7
  padding. Byte-compatible with stores written by the rsk-cli tool.
- Backup envelope (encrypted backups): Argon2id key derivation with its own
  random salt, AES-256-GCM authenticated encryption.

Private keys never exist unencrypted on disk.
"""

import os
import re
import secrets
from pathlib import Path
from typing import Optional, Union

# Cryptography
from cryptography.exceptions import InvalidTag
from cryptography.hazmat.primitives import padding
from cryptography.hazmat.primitives.ciphers import Cipher, algorithms, modes
from cryptography.hazmat.primitives.ciphers.aead import AESGCM
from cryptography.hazmat.primitives.kdf.scrypt import Scrypt
from argon2.exceptions import HashingError
from argon2.low_level import hash_secret_raw, Type

# Ethereum
from eth_account import Account

from .errors import CorruptRecordError, DecryptionError, ValidationError


# ============================================
# Security Constants
# ============================================

# scrypt parameters (Node's crypto.scryptSync defaults)
SCRYPT_N = 2 ** 14
SCRYPT_R = 8
SCRYPT_P = 1
KEY_SIZE = 32  # 256 bits for AES-256

# AES-CBC
CBC_IV_SIZE = 16
CBC_BLOCK_BITS = 128

# Argon2id parameters (OWASP recommendations for high-security)
ARGON2_TIME_COST = 3
ARGON2_MEMORY_COST = 65536  # 64 MB
ARGON2_PARALLELISM = 4
ARGON2_SALT_SIZE = 16

# Upper bounds accepted when reading a backup file
ARGON2_MAX_TIME_COST = 10
ARGON2_MAX_MEMORY_COST = 1048576  # 1 GB
ARGON2_MAX_PARALLELISM = 16
ARGON2_MIN_SALT_SIZE = 8

# AES-GCM constants
GCM_IV_SIZE = 12  # 96 bits (recommended for GCM)
GCM_TAG_SIZE = 16

# Secure file permissions (Unix only)
SECURE_FILE_MODE = 0o600  # Owner read/write only

_PRIVATE_KEY_RE = re.compile(r"^(0[xX])?[0-9a-fA-F]{64}$")
_HEX_RE = re.compile(r"^[0-9a-fA-F]*$")

SECP256K1_N = int(
    "FFFFFFFFFFFFFFFFFFFFFFFFFFFFFFFEBAAEDCE6AF48A03BBFD25E8CD0364141",
    16,
)


def set_secure_permissions(filepath: Path) -> None:
    """
    Set restrictive file permissions on Unix systems.

    Sets file to mode 0600 (owner read/write only) to protect sensitive wallet data.
    No-op on Windows (NTFS uses ACLs, not Unix permissions).
    """
    if os.name == 'posix':
        try:
            os.chmod(filepath, SECURE_FILE_MODE)
        except OSError:
            # Best effort - the data itself is encrypted
            pass


# ============================================
# Key Derivation
# ============================================

def derive_wrap_key(password: str, salt: bytes) -> bytes:
    """Derive the 32-byte AES key for a wallet record with scrypt."""
    kdf = Scrypt(salt=salt, length=KEY_SIZE, n=SCRYPT_N, r=SCRYPT_R, p=SCRYPT_P)
    return kdf.derive(password.encode('utf-8'))


def derive_backup_key(password: str, salt: bytes,
                      time_cost: int = ARGON2_TIME_COST,
                      memory_cost: int = ARGON2_MEMORY_COST,
                      parallelism: int = ARGON2_PARALLELISM) -> bytes:
    """
    Derive a backup encryption key from password using Argon2id.

    Argon2id is memory-hard, making brute-force attacks expensive.
    With these parameters, each password guess requires ~64MB RAM.
    """
    return hash_secret_raw(
        secret=password.encode('utf-8'),
        salt=salt,
        time_cost=time_cost,
        memory_cost=memory_cost,
        parallelism=parallelism,
        hash_len=KEY_SIZE,
        type=Type.ID
    )


# ============================================
# Key Wrap (AES-256-CBC)
# ============================================

def wrap(plaintext: bytes, password: str) -> tuple[str, str]:
    """
    Encrypt bytes under a password.

    A fresh random IV is generated on every call and doubles as the
    scrypt salt.

    Returns: (ciphertext_hex, iv_hex)
    """
    iv = secrets.token_bytes(CBC_IV_SIZE)
    key = derive_wrap_key(password, iv)

    padder = padding.PKCS7(CBC_BLOCK_BITS).padder()
    padded = padder.update(plaintext) + padder.finalize()

    encryptor = Cipher(algorithms.AES(key), modes.CBC(iv)).encryptor()
    ciphertext = encryptor.update(padded) + encryptor.finalize()

    return ciphertext.hex(), iv.hex()


def unwrap(ciphertext_hex: Optional[str], iv_hex: Optional[str], password: str) -> bytes:
    """
    Decrypt bytes produced by `wrap`.

    Raises:
        CorruptRecordError: ciphertext or IV missing or not valid hex
        DecryptionError: wrong password or tampered ciphertext
    """
    ciphertext, iv = _decode_wrapped(ciphertext_hex, iv_hex)
    key = derive_wrap_key(password, iv)

    try:
        decryptor = Cipher(algorithms.AES(key), modes.CBC(iv)).decryptor()
        padded = decryptor.update(ciphertext) + decryptor.finalize()
        unpadder = padding.PKCS7(CBC_BLOCK_BITS).unpadder()
        return unpadder.update(padded) + unpadder.finalize()
    except ValueError:
        raise DecryptionError() from None


def _decode_wrapped(ciphertext_hex: Optional[str], iv_hex: Optional[str]) -> tuple[bytes, bytes]:
    if not ciphertext_hex or not iv_hex:
        raise CorruptRecordError("Record is missing its ciphertext or IV")
    if not isinstance(ciphertext_hex, str) or not isinstance(iv_hex, str):
        raise CorruptRecordError("Ciphertext and IV must be hex strings")
    if not _HEX_RE.match(ciphertext_hex) or not _HEX_RE.match(iv_hex):
        raise CorruptRecordError("Ciphertext or IV is not valid hex")

    ciphertext = bytes.fromhex(ciphertext_hex) if len(ciphertext_hex) % 2 == 0 else b""
    iv = bytes.fromhex(iv_hex) if len(iv_hex) % 2 == 0 else b""

    if len(iv) != CBC_IV_SIZE:
        raise CorruptRecordError(f"IV must be {CBC_IV_SIZE} bytes")
    if not ciphertext or len(ciphertext) % (CBC_BLOCK_BITS // 8):
        raise CorruptRecordError("Ciphertext length is not a whole number of blocks")
    return ciphertext, iv


def wrap_private_key(private_key: bytes, password: str) -> tuple[str, str]:
    """
    Encrypt a raw 32-byte private key.

    The plaintext is the 0x-prefixed hex text of the key, as rsk-cli stores it.
    """
    if len(private_key) != 32:
        raise ValidationError("Private key must be 32 bytes")
    return wrap(("0x" + private_key.hex()).encode('utf-8'), password)


def unwrap_private_key(ciphertext_hex: Optional[str], iv_hex: Optional[str], password: str) -> bytes:
    """
    Decrypt a wrapped private key back to its 32 raw bytes.

    CBC padding alone lets roughly one wrong password in 256 through, so
    the plaintext must also look like a private key before it is returned.
    """
    plaintext = unwrap(ciphertext_hex, iv_hex, password)
    try:
        text = plaintext.decode('utf-8')
    except UnicodeDecodeError:
        raise DecryptionError() from None
    if not _PRIVATE_KEY_RE.match(text):
        raise DecryptionError()
    return bytes.fromhex(text[-64:])


# ============================================
# Backup Envelope (AES-256-GCM)
# ============================================

def encrypt_blob(data: bytes, password: str) -> dict:
    """
    Encrypt arbitrary data for a backup file.

    Returns a JSON-ready envelope carrying the KDF parameters, so a file
    stays readable if the defaults change later.
    """
    salt = secrets.token_bytes(ARGON2_SALT_SIZE)
    key = derive_backup_key(password, salt)
    iv = secrets.token_bytes(GCM_IV_SIZE)

    aesgcm = AESGCM(key)
    ciphertext_and_tag = aesgcm.encrypt(iv, data, None)

    ciphertext = ciphertext_and_tag[:-GCM_TAG_SIZE]
    tag = ciphertext_and_tag[-GCM_TAG_SIZE:]

    return {
        "encrypted": True,
        "version": 1,
        "kdf": {
            "algorithm": "argon2id",
            "salt": salt.hex(),
            "time_cost": ARGON2_TIME_COST,
            "memory_cost": ARGON2_MEMORY_COST,
            "parallelism": ARGON2_PARALLELISM
        },
        "iv": iv.hex(),
        "tag": tag.hex(),
        "data": ciphertext.hex(),
    }


def is_legacy_envelope(envelope: dict) -> bool:
    """rsk-cli backups carry only {encrypted, iv, data}: the key wrap, no KDF block."""
    return isinstance(envelope, dict) and "kdf" not in envelope


def _kdf_param(kdf: dict, name: str, default: int, low: int, high: int) -> int:
    value = int(kdf.get(name, default))
    if not low <= value <= high:
        raise CorruptRecordError(f"Backup KDF {name} out of range: {value}")
    return value


def decrypt_blob(envelope: dict, password: str) -> bytes:
    """
    Decrypt an envelope produced by `encrypt_blob`, or an rsk-cli backup.

    KDF parameters come from the file, so they are bounded before use.

    Raises:
        CorruptRecordError: envelope fields missing, malformed or out of range
        DecryptionError: wrong password or data tampered
    """
    if is_legacy_envelope(envelope):
        return unwrap(envelope.get("data"), envelope.get("iv"), password)

    try:
        kdf = envelope["kdf"]
        if kdf.get("algorithm") != "argon2id":
            raise CorruptRecordError(f"Unsupported backup KDF: {kdf.get('algorithm')}")
        salt = bytes.fromhex(kdf["salt"])
        iv = bytes.fromhex(envelope["iv"])
        tag = bytes.fromhex(envelope["tag"])
        ciphertext = bytes.fromhex(envelope["data"])
        time_cost = _kdf_param(kdf, "time_cost", ARGON2_TIME_COST, 1, ARGON2_MAX_TIME_COST)
        parallelism = _kdf_param(kdf, "parallelism", ARGON2_PARALLELISM, 1, ARGON2_MAX_PARALLELISM)
        memory_cost = _kdf_param(kdf, "memory_cost", ARGON2_MEMORY_COST,
                                 8 * parallelism, ARGON2_MAX_MEMORY_COST)
    except (KeyError, TypeError, ValueError, AttributeError) as e:
        raise CorruptRecordError("Malformed encrypted backup") from e

    if len(salt) < ARGON2_MIN_SALT_SIZE or len(iv) != GCM_IV_SIZE or len(tag) != GCM_TAG_SIZE:
        raise CorruptRecordError("Malformed encrypted backup")

    try:
        key = derive_backup_key(password, salt, time_cost=time_cost,
                                memory_cost=memory_cost, parallelism=parallelism)
    except HashingError as e:
        raise CorruptRecordError("Malformed encrypted backup") from e

    aesgcm = AESGCM(key)
    try:
        return aesgcm.decrypt(iv, ciphertext + tag, None)
    except (InvalidTag, ValueError):
        raise DecryptionError() from None


# ============================================
# Key Pairs
# ============================================

def generate_private_key() -> bytes:
    """Generate a fresh secp256k1 private key."""
    return bytes(Account.create().key)


def normalize_private_key(private_key: Union[str, bytes]) -> bytes:
    """
    Parse a private key given as hex text (with or without 0x) or raw bytes.

    Raises: ValidationError if it is not a valid secp256k1 key.
    """
    if isinstance(private_key, str):
        pkey = private_key.strip()
        if not _PRIVATE_KEY_RE.match(pkey):
            raise ValidationError("Private key must be 64 hex characters (optionally 0x-prefixed)")
        if pkey.startswith("0x") or pkey.startswith("0X"):
            pkey = pkey[2:]
        pkey_bytes = bytes.fromhex(pkey)
    else:
        pkey_bytes = bytes(private_key)

    if len(pkey_bytes) != 32:
        raise ValidationError("Private key must be 32 bytes")
    if not 0 < int.from_bytes(pkey_bytes, "big") < SECP256K1_N:
        raise ValidationError("Private key is outside the secp256k1 range")
    return pkey_bytes


def address_from_private_key(private_key: bytes) -> str:
    """Checksummed 0x address for a private key."""
    return Account.from_key(private_key).address
