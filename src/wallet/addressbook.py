"""
Address Book - Labelled reference addresses.

A label -> address map stored next to the wallets. Entries are not used for
signing. Any entry can be sealed under its own password with the same key
wrap as wallet records; a sealed entry shows only its label until unlocked.
"""

import json
import logging
from dataclasses import dataclass
from typing import Optional

from eth_utils import is_address, to_checksum_address

from .crypto import unwrap, wrap
from .errors import (
    DecryptionError,
    DuplicateLabelError,
    NotFoundError,
    ValidationError,
    WeakPasswordError,
)
from .password import PasswordPolicy
from .persistence import StoreGateway
from .store import AddressEntry, WalletStore, validate_name

logger = logging.getLogger(__name__)


def normalize_address(address: str) -> str:
    """Checksummed form of a 0x address, or ValidationError."""
    if not isinstance(address, str) or not is_address(address.strip()):
        raise ValidationError(f"Invalid address: {address}")
    return to_checksum_address(address.strip())


@dataclass
class BookItem:
    """What callers see of an entry. Sealed entries have no address or notes."""
    label: str
    address: Optional[str] = None
    notes: Optional[str] = None
    encrypted: bool = False

    def to_dict(self) -> dict:
        d = {"label": self.label, "encrypted": self.encrypted}
        if self.address is not None:
            d["address"] = self.address
        if self.notes:
            d["notes"] = self.notes
        return d


class AddressBook:
    """Operations on the address book of a WalletStore."""

    def __init__(self, gateway: StoreGateway, store: Optional[WalletStore] = None,
                 policy: Optional[PasswordPolicy] = None, prompter=None):
        self.gateway = gateway
        self.store = store if store is not None else gateway.load()
        self.policy = policy or PasswordPolicy()
        self.prompter = prompter

    @property
    def _book(self) -> dict[str, AddressEntry]:
        return self.store.address_book

    def _get(self, label: str) -> AddressEntry:
        entry = self.store.address_book.get(label) if self.store.has_address_book else None
        if entry is None:
            raise NotFoundError(f"No address book entry labelled '{label}'")
        return entry

    def _password(self, label: str, password: Optional[str], new: bool = False) -> str:
        if password is not None:
            return password
        if self.prompter is None:
            raise ValidationError("A password is required")
        verb = "Choose a" if new else "Enter the"
        return self.prompter.password(f"{verb} password for entry '{label}'", confirm=new)

    # ---- sealing ----

    def _seal(self, fields: dict, password: str) -> AddressEntry:
        ciphertext, iv = wrap(json.dumps(fields).encode("utf-8"), password)
        return AddressEntry.sealed(ciphertext, iv)

    def _open(self, label: str, entry: AddressEntry, password: str) -> AddressEntry:
        """
        Decrypt a sealed entry.

        A wrong password can still produce valid padding, so anything that
        does not decode to an entry is treated as a wrong password too.
        """
        plaintext = unwrap(entry.encrypted_data, entry.iv, password)
        try:
            fields = json.loads(plaintext.decode("utf-8"))
        except (UnicodeDecodeError, json.JSONDecodeError):
            raise DecryptionError() from None
        if not isinstance(fields, dict) or not isinstance(fields.get("address"), str):
            raise DecryptionError()
        return AddressEntry.plain(fields["address"], notes=fields.get("notes"))

    # ============================================
    # CRUD
    # ============================================

    def add(self, label: str, address: str, notes: Optional[str] = None) -> BookItem:
        label = validate_name(label, kind="Label")
        address = normalize_address(address)
        if self.store.has_address_book and label in self._book:
            raise DuplicateLabelError(f"Label '{label}' already exists")

        with self.gateway.transaction(self.store):
            self._book[label] = AddressEntry.plain(address, notes=notes or None)

        logger.info(f"Added address book entry '{label}'")
        return BookItem(label=label, address=address, notes=notes or None)

    def entries(self) -> list[BookItem]:
        """Every entry; sealed ones show only their label."""
        if not self.store.has_address_book:
            return []
        return [self._item(label, entry) for label, entry in self._book.items()]

    def view(self, label: str, password: Optional[str] = None) -> BookItem:
        """One entry, unlocking it for display if it is sealed."""
        entry = self._get(label)
        if entry.encrypted:
            entry = self._open(label, entry, self._password(label, password))
        return self._item(label, entry)

    def edit(self, label: str, address: Optional[str] = None, notes: Optional[str] = None,
             new_label: Optional[str] = None, password: Optional[str] = None) -> BookItem:
        """
        Change an entry's address, notes or label.

        A sealed entry is unlocked, changed and sealed again under the same
        password.
        """
        entry = self._get(label)
        target = label
        if new_label is not None:
            target = validate_name(new_label, kind="Label")
            if target != label and target in self._book:
                raise DuplicateLabelError(f"Label '{target}' already exists")

        sealed = entry.encrypted
        if sealed:
            password = self._password(label, password)
            entry = self._open(label, entry, password)

        updated = AddressEntry.plain(
            normalize_address(address) if address is not None else entry.address,
            notes=entry.notes if notes is None else (notes or None),
        )
        stored = self._seal(updated.plaintext_fields(), password) if sealed else updated

        with self.gateway.transaction(self.store):
            self.store.put_address_entry(target, stored, old_label=label)

        logger.info(f"Updated address book entry '{target}'")
        return self._item(target, updated)

    def delete(self, label: str, confirmed: Optional[bool] = None) -> bool:
        self._get(label)
        if confirmed is None:
            if self.prompter is None:
                raise ValidationError("Confirmation is required")
            confirmed = self.prompter.confirm(f"Delete address book entry '{label}'?", default=False)
        if not confirmed:
            return False

        with self.gateway.transaction(self.store):
            del self._book[label]

        logger.info(f"Deleted address book entry '{label}'")
        return True

    def search(self, query: str) -> list[BookItem]:
        """Case-insensitive substring match over label and address."""
        needle = query.strip().lower()
        results = []
        for item in self.entries():
            haystack = [item.label] + ([item.address] if item.address else [])
            if any(needle in h.lower() for h in haystack):
                results.append(item)
        return results

    # ============================================
    # Encryption
    # ============================================

    def encrypt(self, label: str, password: Optional[str] = None) -> None:
        """Replace a plaintext entry with its ciphertext."""
        entry = self._get(label)
        if entry.encrypted:
            raise ValidationError(f"Entry '{label}' is already encrypted")

        password = self._password(label, password, new=True)
        evaluation = self.policy.evaluate(password)
        if not evaluation.is_valid:
            raise WeakPasswordError(evaluation)

        with self.gateway.transaction(self.store):
            self._book[label] = self._seal(entry.plaintext_fields(), password)

        logger.info(f"Encrypted address book entry '{label}'")

    def decrypt(self, label: str, password: Optional[str] = None,
                keep_decrypted: Optional[bool] = None) -> BookItem:
        """
        Unlock a sealed entry.

        With keep_decrypted the plaintext replaces the ciphertext in the
        store; otherwise the entry stays sealed and is only shown.
        """
        entry = self._get(label)
        if not entry.encrypted:
            raise ValidationError(f"Entry '{label}' is not encrypted")

        opened = self._open(label, entry, self._password(label, password))

        if keep_decrypted is None:
            keep_decrypted = (
                self.prompter.confirm(f"Keep '{label}' decrypted in the address book?", default=False)
                if self.prompter is not None else False
            )
        if keep_decrypted:
            with self.gateway.transaction(self.store):
                self._book[label] = opened
            logger.info(f"Decrypted address book entry '{label}'")

        return self._item(label, opened)

    # ============================================
    # Resolution
    # ============================================

    def resolve(self, target: str, password: Optional[str] = None) -> str:
        """
        Turn an address or a label into a checksummed address.

        Labels match case-insensitively. Sealed entries need their password.
        """
        target = target.strip()
        if target.lower().startswith("0x"):
            return normalize_address(target)

        if self.store.has_address_book:
            for label, entry in self._book.items():
                if label.lower() == target.lower():
                    if entry.encrypted:
                        entry = self._open(label, entry, self._password(label, password))
                    return normalize_address(entry.address)
        raise NotFoundError(f"'{target}' is neither an address nor a known label")

    @staticmethod
    def _item(label: str, entry: AddressEntry) -> BookItem:
        if entry.encrypted:
            return BookItem(label=label, encrypted=True)
        return BookItem(label=label, address=entry.address, notes=entry.notes)
