"""
Wallet Errors - Exception taxonomy for the key store.

Every failure the store can surface is one of these. All of them are
recoverable at the call site (re-prompt, pick another name, list options);
none of them leaves the store half-updated.

Hierarchy:
- KeystoreError: base class
- ValidationError: bad password, bad name, bad address format
- DuplicateNameError / DuplicateAddressError / DuplicateLabelError
- NotFoundError (NoWalletError, EmptyStoreError)
- DeleteProtectedError: tried to delete the current wallet
- NoAlternativeWalletError: nothing else to switch to
- DecryptionError: wrong password or corrupted ciphertext
- CorruptRecordError: structurally malformed data on disk
- PersistenceError: the store could not be written
"""

from typing import Optional


class KeystoreError(Exception):
    """Base class for all key store errors."""


class ValidationError(KeystoreError, ValueError):
    """Input rejected before anything was changed."""

    def __init__(self, message: str, reasons: Optional[list[str]] = None):
        super().__init__(message)
        self.reasons = list(reasons) if reasons else [message]


class WeakPasswordError(ValidationError):
    """Password does not meet the policy. `evaluation` lists every violation."""

    def __init__(self, evaluation):
        super().__init__("Password does not meet the requirements", evaluation.reasons)
        self.evaluation = evaluation


class DuplicateNameError(KeystoreError):
    """A wallet with this name already exists."""


class DuplicateLabelError(DuplicateNameError):
    """An address book entry with this label already exists."""


class DuplicateAddressError(KeystoreError):
    """A wallet with this address already exists."""

    def __init__(self, address: str, existing_name: Optional[str] = None):
        if existing_name:
            message = f"Address {address} is already stored as wallet '{existing_name}'"
        else:
            message = f"Address {address} is already stored"
        super().__init__(message)
        self.address = address
        self.existing_name = existing_name


class NotFoundError(KeystoreError, LookupError):
    """The named wallet or entry does not exist."""


class NoWalletError(NotFoundError):
    """No current wallet is set."""


class EmptyStoreError(NotFoundError):
    """The store holds no wallets."""


class DeleteProtectedError(KeystoreError):
    """The current wallet cannot be deleted; switch away first."""


class NoAlternativeWalletError(KeystoreError):
    """Switch requested but no other wallet exists."""


class DecryptionError(KeystoreError, ValueError):
    """Wrong password or corrupted data. Deliberately says nothing more."""

    MESSAGE = "Failed to decrypt - check your password"

    def __init__(self, message: str = MESSAGE):
        super().__init__(message)


class CorruptRecordError(KeystoreError):
    """A stored record is structurally malformed."""


class PersistenceError(KeystoreError, OSError):
    """The store file could not be written. The previous file is untouched."""
