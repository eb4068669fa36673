import secrets

import pytest
from argon2.exceptions import HashingError
from cryptography.hazmat.primitives import padding
from cryptography.hazmat.primitives.ciphers import Cipher, algorithms, modes
from cryptography.hazmat.primitives.kdf.scrypt import Scrypt

from wallet import (
    CorruptRecordError,
    DecryptionError,
    ValidationError,
    address_from_private_key,
    decrypt_blob,
    encrypt_blob,
    generate_private_key,
    normalize_private_key,
    unwrap_private_key,
    wrap,
    wrap_private_key,
)
from wallet.crypto import SECP256K1_N

PASSWORD = "Tr0ub4dor&3"


def test_private_key_round_trip() -> None:
    key = generate_private_key()
    ciphertext, iv = wrap_private_key(key, PASSWORD)
    assert unwrap_private_key(ciphertext, iv, PASSWORD) == key


def test_each_wrap_uses_a_fresh_iv() -> None:
    key = generate_private_key()
    first = wrap_private_key(key, PASSWORD)
    second = wrap_private_key(key, PASSWORD)
    assert first[1] != second[1]
    assert first[0] != second[0]
    assert len(first[1]) == 32


def test_wrong_password_fails() -> None:
    ciphertext, iv = wrap_private_key(generate_private_key(), PASSWORD)
    with pytest.raises(DecryptionError) as exc:
        unwrap_private_key(ciphertext, iv, "not the password")
    assert str(exc.value) == "Failed to decrypt - check your password"
    assert exc.value.__cause__ is None


def test_unwraps_keys_written_by_rsk_cli() -> None:
    # scrypt(password, salt=iv) + AES-256-CBC over the "0x..." text
    key = secrets.token_bytes(32)
    iv = secrets.token_bytes(16)
    aes_key = Scrypt(salt=iv, length=32, n=2 ** 14, r=8, p=1).derive(PASSWORD.encode())
    padder = padding.PKCS7(128).padder()
    padded = padder.update(("0x" + key.hex()).encode()) + padder.finalize()
    encryptor = Cipher(algorithms.AES(aes_key), modes.CBC(iv)).encryptor()
    ciphertext = encryptor.update(padded) + encryptor.finalize()

    assert unwrap_private_key(ciphertext.hex(), iv.hex(), PASSWORD) == key


@pytest.mark.parametrize("ciphertext,iv", [
    ("", "00" * 16),
    ("00" * 16, None),
    ("zz" * 16, "00" * 16),
    ("00" * 16, "00" * 8),
    ("00" * 15, "00" * 16),
])
def test_malformed_records_are_corrupt(ciphertext, iv) -> None:
    with pytest.raises(CorruptRecordError):
        unwrap_private_key(ciphertext, iv, PASSWORD)


def test_normalize_private_key_accepts_common_forms() -> None:
    raw = "ab" * 32
    assert normalize_private_key(raw) == bytes.fromhex(raw)
    assert normalize_private_key("0x" + raw) == bytes.fromhex(raw)
    assert normalize_private_key("  0X" + raw.upper() + "\n") == bytes.fromhex(raw)
    assert normalize_private_key(bytes.fromhex(raw)) == bytes.fromhex(raw)


@pytest.mark.parametrize("bad", [
    "ab" * 31,
    "0x" + "gg" * 32,
    "00" * 32,
    format(SECP256K1_N, "064x"),
    b"\x01" * 31,
])
def test_normalize_private_key_rejects_invalid_keys(bad) -> None:
    with pytest.raises(ValidationError):
        normalize_private_key(bad)


def test_address_from_private_key() -> None:
    key = normalize_private_key("0x" + "0" * 63 + "1")
    assert address_from_private_key(key) == "0x7E5F4552091A69125d5DfCb7b8C2659029395Bdf"


def test_backup_envelope_round_trip() -> None:
    envelope = encrypt_blob(b'{"wallets": {}}', PASSWORD)
    assert envelope["encrypted"] is True
    assert envelope["kdf"]["algorithm"] == "argon2id"
    assert decrypt_blob(envelope, PASSWORD) == b'{"wallets": {}}'


def test_backup_envelope_wrong_password_and_tampering() -> None:
    envelope = encrypt_blob(b"secret", PASSWORD)
    with pytest.raises(DecryptionError):
        decrypt_blob(envelope, "wrong password")

    tampered = dict(envelope, data=("00" if envelope["data"][:2] != "00" else "01") + envelope["data"][2:])
    with pytest.raises(DecryptionError):
        decrypt_blob(tampered, PASSWORD)


def test_backup_envelope_missing_fields_is_corrupt() -> None:
    envelope = encrypt_blob(b"secret", PASSWORD)
    del envelope["tag"]
    with pytest.raises(CorruptRecordError):
        decrypt_blob(envelope, PASSWORD)


@pytest.mark.parametrize("field, value", [
    ("memory_cost", 10 ** 9),
    ("time_cost", 0),
    ("time_cost", 10 ** 6),
    ("parallelism", 0),
    ("salt", "00"),
    ("algorithm", "scrypt"),
])
def test_backup_envelope_rejects_untrusted_kdf_parameters(field, value) -> None:
    envelope = encrypt_blob(b"secret", PASSWORD)
    envelope["kdf"][field] = value
    with pytest.raises(CorruptRecordError):
        decrypt_blob(envelope, PASSWORD)


def test_backup_envelope_argon2_failure_is_corrupt(monkeypatch) -> None:
    envelope = encrypt_blob(b"secret", PASSWORD)

    def failing(*args, **kwargs):
        raise HashingError("Memory allocation error")

    monkeypatch.setattr("wallet.crypto.derive_backup_key", failing)
    with pytest.raises(CorruptRecordError):
        decrypt_blob(envelope, PASSWORD)


def test_decrypt_blob_reads_rsk_cli_backup_layout() -> None:
    data, iv = wrap(b'{"wallets": {}}', PASSWORD)
    envelope = {"encrypted": True, "iv": iv, "data": data}
    assert decrypt_blob(envelope, PASSWORD) == b'{"wallets": {}}'
