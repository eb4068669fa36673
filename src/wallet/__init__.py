"""
Wallet package - Encrypted multi-wallet key store.

Contains:
- Crypto: key wrap (scrypt + AES-CBC) and backup envelopes (Argon2id + AES-GCM)
- PasswordPolicy: Length and strength gating for new passwords
- WalletStore, WalletRecord, AddressEntry: In-memory model of the wallet file
- StoreGateway: Atomic load/save of the wallet file
- WalletManager: Create, import, switch, rename, delete, backup, restore
- AddressBook: Labelled reference addresses, optionally encrypted
- Errors: KeystoreError and its subclasses
"""

from .errors import (
    KeystoreError,
    ValidationError,
    WeakPasswordError,
    DuplicateNameError,
    DuplicateAddressError,
    DuplicateLabelError,
    NotFoundError,
    NoWalletError,
    EmptyStoreError,
    DeleteProtectedError,
    NoAlternativeWalletError,
    DecryptionError,
    CorruptRecordError,
    PersistenceError,
)
from .crypto import (
    wrap,
    unwrap,
    wrap_private_key,
    unwrap_private_key,
    encrypt_blob,
    decrypt_blob,
    generate_private_key,
    normalize_private_key,
    address_from_private_key,
)
from .password import (
    PasswordPolicy,
    PasswordEvaluation,
    StrengthScore,
    evaluate_password,
)
from .store import (
    WalletStore,
    WalletRecord,
    AddressEntry,
)
from .persistence import StoreGateway
from .manager import (
    WalletManager,
    WalletInfo,
    RestoreReport,
    Prompter,
    CONFLICT_CHOICES,
)
from .addressbook import AddressBook, BookItem

__all__ = [
    # Errors
    "KeystoreError",
    "ValidationError",
    "WeakPasswordError",
    "DuplicateNameError",
    "DuplicateAddressError",
    "DuplicateLabelError",
    "NotFoundError",
    "NoWalletError",
    "EmptyStoreError",
    "DeleteProtectedError",
    "NoAlternativeWalletError",
    "DecryptionError",
    "CorruptRecordError",
    "PersistenceError",
    # Crypto
    "wrap",
    "unwrap",
    "wrap_private_key",
    "unwrap_private_key",
    "encrypt_blob",
    "decrypt_blob",
    "generate_private_key",
    "normalize_private_key",
    "address_from_private_key",
    # Password
    "PasswordPolicy",
    "PasswordEvaluation",
    "StrengthScore",
    "evaluate_password",
    # Store
    "WalletStore",
    "WalletRecord",
    "AddressEntry",
    "StoreGateway",
    # Manager
    "WalletManager",
    "WalletInfo",
    "RestoreReport",
    "Prompter",
    "CONFLICT_CHOICES",
    # Address book
    "AddressBook",
    "BookItem",
]
