"""
Wallet Store - In-memory model of the persisted wallet file.

Holds the named wallet records, the current-wallet pointer and the
address book. Every mutation either applies fully or raises before
touching anything; no method does I/O.

On-disk shape:
    {
      "currentWallet": "<name>",
      "wallets": {"<name>": {"address", "encryptedPrivateKey", "iv"}},
      "addressBook": {"<label>": {"address", "notes"} | {"encrypted", "encryptedData", "iv"}}
    }
"""

import copy
from dataclasses import dataclass
from typing import Optional

from .errors import (
    CorruptRecordError,
    DuplicateAddressError,
    DuplicateNameError,
    NotFoundError,
    ValidationError,
)


MAX_NAME_LENGTH = 64

# Name given to the wallet found in a pre-multi-wallet file
LEGACY_WALLET_NAME = "default"


def validate_name(name: str, kind: str = "Wallet name") -> str:
    """Return the stripped name, or raise ValidationError."""
    if not isinstance(name, str) or not name.strip():
        raise ValidationError(f"{kind} cannot be empty")
    name = name.strip()
    if len(name) > MAX_NAME_LENGTH:
        raise ValidationError(f"{kind} must be at most {MAX_NAME_LENGTH} characters")
    if any(ord(c) < 32 for c in name):
        raise ValidationError(f"{kind} cannot contain control characters")
    return name


# ============================================
# Records
# ============================================

@dataclass
class WalletRecord:
    """A stored wallet. The private key only ever appears encrypted."""
    address: str                  # 0x + 40 hex (checksummed)
    encrypted_private_key: str    # hex ciphertext
    iv: str                       # hex, 16 bytes, also the KDF salt

    def to_dict(self) -> dict:
        return {
            "address": self.address,
            "encryptedPrivateKey": self.encrypted_private_key,
            "iv": self.iv,
        }

    @classmethod
    def from_dict(cls, data: dict) -> "WalletRecord":
        """Create from the on-disk shape, rejecting malformed records."""
        if not isinstance(data, dict):
            raise CorruptRecordError("Wallet record must be an object")

        missing = [k for k in ("address", "encryptedPrivateKey", "iv")
                   if not isinstance(data.get(k), str) or not data.get(k)]
        if missing:
            raise CorruptRecordError(f"Wallet record is missing: {', '.join(missing)}")

        return cls(
            address=data["address"],
            encrypted_private_key=data["encryptedPrivateKey"],
            iv=data["iv"],
        )

    def same_address(self, address: str) -> bool:
        return self.address.lower() == address.lower()


@dataclass
class AddressEntry:
    """
    A label -> address reference.

    Either plaintext (address, label, notes) or encrypted (encrypted_data,
    iv), never both. `encrypted` discriminates.
    """
    address: Optional[str] = None
    label: Optional[str] = None
    notes: Optional[str] = None
    encrypted: bool = False
    encrypted_data: Optional[str] = None   # hex ciphertext of the plaintext fields
    iv: Optional[str] = None

    @classmethod
    def plain(cls, address: str, label: Optional[str] = None,
              notes: Optional[str] = None) -> "AddressEntry":
        return cls(address=address, label=label, notes=notes)

    @classmethod
    def sealed(cls, encrypted_data: str, iv: str) -> "AddressEntry":
        return cls(encrypted=True, encrypted_data=encrypted_data, iv=iv)

    def plaintext_fields(self) -> dict:
        """The fields that are encrypted together."""
        d = {"address": self.address, "label": self.label, "notes": self.notes}
        return {k: v for k, v in d.items() if v is not None}

    def to_dict(self) -> dict:
        if self.encrypted:
            return {
                "encrypted": True,
                "encryptedData": self.encrypted_data,
                "iv": self.iv,
            }
        return self.plaintext_fields()

    @classmethod
    def from_dict(cls, data) -> "AddressEntry":
        # rsk-cli wrote bare strings: {"label": "0x..."}
        if isinstance(data, str):
            return cls.plain(data)
        if not isinstance(data, dict):
            raise CorruptRecordError("Address book entry must be an object or an address")

        if data.get("encrypted"):
            if not data.get("encryptedData") or not data.get("iv"):
                raise CorruptRecordError("Encrypted address book entry is missing its data or IV")
            return cls.sealed(data["encryptedData"], data["iv"])

        if not data.get("address"):
            raise CorruptRecordError("Address book entry is missing its address")
        return cls.plain(data["address"], data.get("label"), data.get("notes"))


# ============================================
# Store
# ============================================

class WalletStore:
    """The root object: wallets, current pointer, address book."""

    def __init__(self):
        self._current: Optional[str] = None
        self._wallets: dict[str, WalletRecord] = {}
        self._address_book: Optional[dict[str, AddressEntry]] = None
        self._extra: dict = {}   # unknown top-level keys, kept verbatim

    # ---- read access ----

    @property
    def current_wallet(self) -> Optional[str]:
        return self._current

    @property
    def wallets(self) -> dict[str, WalletRecord]:
        """Read-only view (a copy)."""
        return dict(self._wallets)

    @property
    def address_book(self) -> dict[str, AddressEntry]:
        """The live address book map (created on first access)."""
        if self._address_book is None:
            self._address_book = {}
        return self._address_book

    @property
    def has_address_book(self) -> bool:
        return self._address_book is not None

    def names(self) -> list[str]:
        return list(self._wallets.keys())

    def is_empty(self) -> bool:
        return not self._wallets

    def __contains__(self, name: str) -> bool:
        return name in self._wallets

    def __len__(self) -> int:
        return len(self._wallets)

    def get_wallet(self, name: str) -> WalletRecord:
        if name not in self._wallets:
            raise NotFoundError(f"Wallet '{name}' not found")
        return self._wallets[name]

    def find_by_address(self, address: str) -> Optional[str]:
        """Name of the wallet holding this address, if any."""
        for name, record in self._wallets.items():
            if record.same_address(address):
                return name
        return None

    # ---- mutations ----

    def add_wallet(self, name: str, record: WalletRecord) -> str:
        """Add a record. Returns the normalized name."""
        name = validate_name(name)
        if name in self._wallets:
            raise DuplicateNameError(f"Wallet '{name}' already exists")
        existing = self.find_by_address(record.address)
        if existing is not None:
            raise DuplicateAddressError(record.address, existing)
        self._wallets[name] = record
        return name

    def remove_wallet(self, name: str) -> WalletRecord:
        """Remove a record. Clears the current pointer if it named this wallet."""
        if name not in self._wallets:
            raise NotFoundError(f"Wallet '{name}' not found")
        record = self._wallets.pop(name)
        if self._current == name:
            self._current = None
        return record

    def replace_wallet(self, name: str, record: WalletRecord) -> None:
        """Swap the record stored under an existing name (same address rules)."""
        if name not in self._wallets:
            raise NotFoundError(f"Wallet '{name}' not found")
        existing = self.find_by_address(record.address)
        if existing is not None and existing != name:
            raise DuplicateAddressError(record.address, existing)
        self._wallets[name] = record

    def rename_wallet(self, old: str, new: str) -> str:
        """Move a record to a new key; the current pointer follows."""
        if old not in self._wallets:
            raise NotFoundError(f"Wallet '{old}' not found")
        new = validate_name(new)
        if new == old:
            return new
        if new in self._wallets:
            raise DuplicateNameError(f"Wallet '{new}' already exists")

        # Rebuild to keep the wallet's position in the file
        self._wallets = {
            (new if name == old else name): record
            for name, record in self._wallets.items()
        }
        if self._current == old:
            self._current = new
        return new

    def set_current(self, name: str) -> None:
        if name not in self._wallets:
            raise NotFoundError(f"Wallet '{name}' not found")
        self._current = name

    def put_address_entry(self, label: str, entry: AddressEntry,
                          old_label: Optional[str] = None) -> None:
        """Store an entry, optionally moving it from old_label in place."""
        book = self.address_book
        if old_label is None or old_label == label:
            book[label] = entry
            return
        if old_label not in book:
            raise NotFoundError(f"No address book entry labelled '{old_label}'")
        if label in book:
            raise DuplicateNameError(f"Label '{label}' already exists")
        self._address_book = {
            (label if k == old_label else k): (entry if k == old_label else v)
            for k, v in book.items()
        }

    # ---- serialization ----

    def to_dict(self) -> dict:
        data = dict(self._extra)
        if self._current is not None:
            data["currentWallet"] = self._current
        data["wallets"] = {name: r.to_dict() for name, r in self._wallets.items()}
        if self._address_book is not None:
            data["addressBook"] = {label: e.to_dict() for label, e in self._address_book.items()}
        return data

    @classmethod
    def from_dict(cls, data: dict) -> "WalletStore":
        store = cls()
        store._load(data)
        return store

    def snapshot(self) -> dict:
        """Deep copy of the current state for rollback."""
        return copy.deepcopy(self.to_dict())

    def restore(self, snapshot: dict) -> None:
        """Reset in place to a snapshot taken earlier."""
        self._load(snapshot)

    def _load(self, data: dict) -> None:
        if not isinstance(data, dict):
            raise CorruptRecordError("Wallet file must contain a JSON object")

        data = dict(data)
        if "wallets" not in data and "encryptedPrivateKey" in data:
            data = _upgrade_legacy(data)

        raw_wallets = data.pop("wallets", None) or {}
        if not isinstance(raw_wallets, dict):
            raise CorruptRecordError("'wallets' must be an object")
        current = data.pop("currentWallet", None)
        raw_book = data.pop("addressBook", None)
        if raw_book is not None and not isinstance(raw_book, dict):
            raise CorruptRecordError("'addressBook' must be an object")

        wallets = {name: WalletRecord.from_dict(r) for name, r in raw_wallets.items()}
        if not wallets:
            current = None
        elif current is not None and current not in wallets:
            raise CorruptRecordError(f"Current wallet '{current}' does not exist")

        self._wallets = wallets
        self._current = current
        self._address_book = (
            {label: AddressEntry.from_dict(e) for label, e in raw_book.items()}
            if raw_book is not None else None
        )
        self._extra = data


def _upgrade_legacy(data: dict) -> dict:
    """A single-wallet file becomes one wallet named 'default', made current."""
    record = {k: data.pop(k, None) for k in ("address", "encryptedPrivateKey", "iv")}
    data["wallets"] = {LEGACY_WALLET_NAME: record}
    data["currentWallet"] = LEGACY_WALLET_NAME
    return data
