"""
Wallet Manager - Multi-wallet lifecycle.

Create, import, list, switch, rename, delete, back up and restore wallets,
and unlock a wallet's private key for a single signing operation.

The manager holds one WalletStore for the life of the process and saves it
through the gateway once per mutating call. Anything interactive (names,
passwords, confirmations) goes through an injected Prompter, so the same
logic runs behind a terminal, a test, or another program.
"""

import json
import logging
from dataclasses import dataclass, field
from datetime import datetime, timezone
from pathlib import Path
from typing import Optional, Protocol, Union

from .crypto import (
    address_from_private_key,
    decrypt_blob,
    encrypt_blob,
    generate_private_key,
    is_legacy_envelope,
    normalize_private_key,
    unwrap_private_key,
    wrap_private_key,
)
from .errors import (
    CorruptRecordError,
    DecryptionError,
    DeleteProtectedError,
    DuplicateAddressError,
    DuplicateNameError,
    EmptyStoreError,
    NoAlternativeWalletError,
    NotFoundError,
    NoWalletError,
    ValidationError,
    WeakPasswordError,
)
from .password import PasswordPolicy
from .persistence import StoreGateway, atomic_write_text, read_json, serialize
from .store import WalletRecord, WalletStore, validate_name

logger = logging.getLogger(__name__)


DEFAULT_BACKUP_FILENAME = "wallet_backup.json"
BACKUP_VERSION = "1.0"
BACKUP_TYPE = "wallet-backup"

CONFLICT_SKIP = "skip"
CONFLICT_OVERWRITE = "overwrite"
CONFLICT_RENAME = "rename"
CONFLICT_CANCEL = "cancel"
CONFLICT_CHOICES = [CONFLICT_SKIP, CONFLICT_OVERWRITE, CONFLICT_RENAME, CONFLICT_CANCEL]


class Prompter(Protocol):
    """Source of interactive input."""

    def text(self, message: str, default: Optional[str] = None) -> str: ...

    def password(self, message: str, confirm: bool = False) -> str: ...

    def confirm(self, message: str, default: bool = False) -> bool: ...

    def choose(self, message: str, choices: list[str], default: Optional[str] = None) -> str: ...


@dataclass
class WalletInfo:
    """Public view of a wallet."""
    name: str
    address: str
    is_current: bool

    def to_dict(self) -> dict:
        return {"name": self.name, "address": self.address, "isCurrent": self.is_current}


@dataclass
class RestoreReport:
    """What a restore did."""
    restored: list[str] = field(default_factory=list)
    skipped: list[str] = field(default_factory=list)
    renamed: dict[str, str] = field(default_factory=dict)   # backup name -> stored name
    cancelled: bool = False


class WalletManager:
    """
    Manages the named wallets in one store file.

    Usage:
        manager = WalletManager.open("rootstock-wallet.json")
        manager.create_wallet("alice", "correct horse battery staple")
        key = manager.unlock("alice", "correct horse battery staple")
    """

    def __init__(self, gateway: StoreGateway,
                 policy: Optional[PasswordPolicy] = None,
                 prompter: Optional[Prompter] = None,
                 store: Optional[WalletStore] = None,
                 backup_filename: str = DEFAULT_BACKUP_FILENAME):
        self.gateway = gateway
        self.policy = policy or PasswordPolicy()
        self.prompter = prompter
        self.store = store if store is not None else gateway.load()
        self.backup_filename = backup_filename

    @classmethod
    def open(cls, filepath: Union[str, Path], **kwargs) -> "WalletManager":
        """Load the store at filepath (empty if missing)."""
        return cls(StoreGateway(filepath), **kwargs)

    # ============================================
    # Prompt helpers
    # ============================================

    def _require_prompter(self, what: str) -> Prompter:
        if self.prompter is None:
            raise ValidationError(f"{what} is required")
        return self.prompter

    def _ask_password(self, message: str, new: bool = False) -> str:
        return self._require_prompter("A password").password(message, confirm=new)

    def _confirm(self, message: str, default: bool = False) -> bool:
        if self.prompter is None:
            return default
        return self.prompter.confirm(message, default=default)

    def _check_password(self, password: str) -> None:
        evaluation = self.policy.evaluate(password)
        if not evaluation.is_valid:
            raise WeakPasswordError(evaluation)

    def _resolve_name(self, name: Optional[str]) -> str:
        """The given name, or the current wallet."""
        if name is not None:
            self.store.get_wallet(name)
            return name
        if self.store.is_empty():
            raise EmptyStoreError("No wallets found. Create or import a wallet first.")
        if self.store.current_wallet is None:
            raise NoWalletError("No current wallet set. Switch to a wallet first.")
        return self.store.current_wallet

    # ============================================
    # Create / Import
    # ============================================

    def create_wallet(self, name: Optional[str] = None, password: Optional[str] = None,
                      switch: Optional[bool] = None) -> WalletInfo:
        """
        Generate a new key-pair and store it under name.

        Args:
            name: Unique wallet name (prompted if None)
            password: Encryption password (prompted if None)
            switch: Make it current when another wallet already is.
                None asks; without a prompter the current wallet is kept.
        """
        return self._store_key(generate_private_key(), name, password, switch)

    def import_wallet(self, private_key: Union[str, bytes], name: Optional[str] = None,
                      password: Optional[str] = None, switch: Optional[bool] = None) -> WalletInfo:
        """Store an existing private key. Fails if its address is already stored."""
        key = normalize_private_key(private_key)
        address = address_from_private_key(key)
        existing = self.store.find_by_address(address)
        if existing is not None:
            raise DuplicateAddressError(address, existing)
        return self._store_key(key, name, password, switch)

    def _store_key(self, key: bytes, name: Optional[str], password: Optional[str],
                   switch: Optional[bool]) -> WalletInfo:
        address = address_from_private_key(key)

        if name is None:
            name = self._require_prompter("A wallet name").text("Enter a name for your wallet")
        name = validate_name(name)
        if name in self.store:
            raise DuplicateNameError(f"Wallet '{name}' already exists")
        existing = self.store.find_by_address(address)
        if existing is not None:
            raise DuplicateAddressError(address, existing)

        if password is None:
            password = self._ask_password("Enter a password to encrypt your wallet", new=True)
        self._check_password(password)

        ciphertext, iv = wrap_private_key(key, password)
        record = WalletRecord(address=address, encrypted_private_key=ciphertext, iv=iv)

        make_current = self.store.current_wallet is None
        if not make_current:
            if switch is None:
                switch = self._confirm(f"Switch to the new wallet '{name}'?", default=False)
            make_current = switch

        with self.gateway.transaction(self.store):
            self.store.add_wallet(name, record)
            if make_current:
                self.store.set_current(name)

        logger.info(f"Stored wallet '{name}' ({address})")
        return WalletInfo(name=name, address=address, is_current=make_current)

    # ============================================
    # Queries
    # ============================================

    def list_wallets(self) -> list[WalletInfo]:
        """All wallets with their addresses. Raises EmptyStoreError if none."""
        if self.store.is_empty():
            raise EmptyStoreError("No wallets found. Create or import a wallet first.")
        current = self.store.current_wallet
        return [
            WalletInfo(name=name, address=record.address, is_current=(name == current))
            for name, record in self.store.wallets.items()
        ]

    def get_address(self, name: Optional[str] = None) -> str:
        """Public address of the named (or current) wallet. No password needed."""
        return self.store.get_wallet(self._resolve_name(name)).address

    def get_current_address(self) -> str:
        """Address of the current wallet. Raises NoWalletError if there is none."""
        if self.store.current_wallet is None:
            raise NoWalletError("No current wallet set. Create or switch to a wallet first.")
        return self.store.get_wallet(self.store.current_wallet).address

    def wallet_info(self, name: Optional[str] = None) -> dict:
        """Public details of the named (or current) wallet."""
        name = self._resolve_name(name)
        record = self.store.get_wallet(name)
        return {
            "name": name,
            "address": record.address,
            "isCurrentWallet": name == self.store.current_wallet,
        }

    # ============================================
    # Switch / Rename / Delete
    # ============================================

    def switch_wallet(self, name: Optional[str] = None) -> str:
        """Make another wallet current. Returns the new current name."""
        current = self.store.current_wallet
        others = [n for n in self.store.names() if n != current]
        if not others:
            raise NoAlternativeWalletError("No other wallet to switch to. Create or import one first.")

        if name is None:
            name = self._require_prompter("A wallet name").choose(
                "Select the wallet you want to switch to", others)
        if name == current:
            return name

        with self.gateway.transaction(self.store):
            self.store.set_current(name)

        logger.info(f"Switched current wallet to '{name}'")
        return name

    def rename_wallet(self, old: str, new: str) -> str:
        """Rename a wallet. The current pointer follows."""
        with self.gateway.transaction(self.store):
            new = self.store.rename_wallet(old, new)
        logger.info(f"Renamed wallet '{old}' to '{new}'")
        return new

    def delete_wallet(self, name: str, confirmed: Optional[bool] = None) -> bool:
        """
        Delete a non-current wallet.

        Args:
            name: Wallet to delete
            confirmed: True skips the confirmation prompt

        Returns:
            True if deleted, False if the user declined
        """
        record = self.store.get_wallet(name)
        if name == self.store.current_wallet:
            raise DeleteProtectedError(
                f"'{name}' is the current wallet. Switch to another wallet before deleting it."
            )

        if confirmed is None:
            confirmed = self._require_prompter("Confirmation").confirm(
                f"Delete wallet '{name}' ({record.address})? This cannot be undone.",
                default=False,
            )
        if not confirmed:
            logger.info(f"Deletion of wallet '{name}' cancelled")
            return False

        with self.gateway.transaction(self.store):
            self.store.remove_wallet(name)

        logger.info(f"Deleted wallet '{name}'")
        return True

    # ============================================
    # Unlock / Password
    # ============================================

    def unlock(self, name: Optional[str] = None, password: Optional[str] = None) -> bytes:
        """
        Decrypt a wallet's private key for immediate use.

        The caller must not persist or log the returned key.

        Raises:
            NotFoundError: unknown wallet
            DecryptionError: wrong password
            CorruptRecordError: record is malformed or does not match its address
        """
        name = self._resolve_name(name)
        record = self.store.get_wallet(name)

        if password is None:
            password = self._ask_password(f"Enter the password for wallet '{name}'")

        key = unwrap_private_key(record.encrypted_private_key, record.iv, password)
        if not record.same_address(address_from_private_key(key)):
            raise CorruptRecordError(f"Wallet '{name}' does not match its stored address")

        logger.debug(f"Unlocked wallet '{name}'")
        return key

    def change_password(self, name: Optional[str] = None, old_password: Optional[str] = None,
                        new_password: Optional[str] = None) -> None:
        """Re-encrypt a wallet's key under a new password (fresh IV)."""
        name = self._resolve_name(name)
        key = self.unlock(name, old_password)

        if new_password is None:
            new_password = self._ask_password("Enter the new password", new=True)
        self._check_password(new_password)

        ciphertext, iv = wrap_private_key(key, new_password)
        record = WalletRecord(
            address=self.store.get_wallet(name).address,
            encrypted_private_key=ciphertext,
            iv=iv,
        )
        with self.gateway.transaction(self.store):
            self.store.replace_wallet(name, record)

        logger.info(f"Changed password for wallet '{name}'")

    # ============================================
    # Backup / Restore
    # ============================================

    def backup(self, path: Union[str, Path, None] = None, password: Optional[str] = None) -> Path:
        """
        Write a copy of the whole store to path.

        A directory path gets the default backup file name; missing parent
        directories are created. With a password the copy is encrypted.
        The live store is never modified.
        """
        if self.store.is_empty():
            raise EmptyStoreError("No saved wallet found. Create a wallet first.")

        target = Path(path).expanduser() if path else Path.cwd() / self.backup_filename
        if target.is_dir():
            target = target / self.backup_filename

        payload = self.store.to_dict()
        payload["_backup"] = {
            "timestamp": datetime.now(timezone.utc).isoformat().replace("+00:00", "Z"),
            "version": BACKUP_VERSION,
            "type": BACKUP_TYPE,
        }

        if password is not None:
            self._check_password(password)
            payload = encrypt_blob(json.dumps(payload).encode("utf-8"), password)

        atomic_write_text(target, serialize(payload))
        logger.info(f"Backed up {len(self.store)} wallet(s) to {target}")
        return target

    def restore(self, path: Union[str, Path], password: Optional[str] = None,
                on_conflict: Optional[str] = None) -> RestoreReport:
        """
        Merge the wallets from a backup file into the store.

        Args:
            path: Backup file
            password: For encrypted backups (prompted if None)
            on_conflict: skip | overwrite | rename | cancel for names that
                already exist. None asks, or skips without a prompter.
        """
        backup_store = self._read_backup(Path(path).expanduser(), password)

        conflicts = [n for n in backup_store.names() if n in self.store]
        if conflicts and on_conflict is None:
            if self.prompter is not None:
                on_conflict = self.prompter.choose(
                    f"{len(conflicts)} wallet name(s) already exist: {', '.join(conflicts)}. "
                    f"How should they be handled?",
                    CONFLICT_CHOICES, default=CONFLICT_SKIP)
            else:
                on_conflict = CONFLICT_SKIP
        if on_conflict is not None and on_conflict not in CONFLICT_CHOICES:
            raise ValidationError(f"Unknown conflict strategy: {on_conflict}")

        report = RestoreReport()
        if conflicts and on_conflict == CONFLICT_CANCEL:
            report.cancelled = True
            logger.info("Restore cancelled")
            return report

        with self.gateway.transaction(self.store):
            for name, record in backup_store.wallets.items():
                self._restore_one(name, record, on_conflict, report)

            if self.store.current_wallet is None and report.restored:
                backup_current = backup_store.current_wallet
                stored = report.renamed.get(backup_current, backup_current)
                self.store.set_current(stored if stored in report.restored else report.restored[0])

        logger.info(f"Restored {len(report.restored)} wallet(s), skipped {len(report.skipped)}")
        return report

    def _restore_one(self, name: str, record: WalletRecord, on_conflict: Optional[str],
                     report: RestoreReport) -> None:
        target = name
        if name in self.store:
            if on_conflict == CONFLICT_OVERWRITE:
                owner = self.store.find_by_address(record.address)
                if owner is not None and owner != name:
                    logger.warning(f"Skipping '{name}': address already stored as '{owner}'")
                    report.skipped.append(name)
                    return
                self.store.replace_wallet(name, record)
                report.restored.append(name)
                return
            if on_conflict == CONFLICT_RENAME:
                target = self._restored_name(name)
            else:
                report.skipped.append(name)
                return

        owner = self.store.find_by_address(record.address)
        if owner is not None:
            logger.warning(f"Skipping '{name}': address already stored as '{owner}'")
            report.skipped.append(name)
            return

        target = self.store.add_wallet(target, record)
        report.restored.append(target)
        if target != name:
            report.renamed[name] = target

    def _restored_name(self, name: str) -> str:
        candidate = f"{name}_restored"
        if self.prompter is not None:
            candidate = self.prompter.text(f"Enter a new name for wallet '{name}'", default=candidate)
        candidate = validate_name(candidate)
        base, n = candidate, 2
        while candidate in self.store:
            candidate = f"{base}_{n}"
            n += 1
        return candidate

    def _read_backup(self, path: Path, password: Optional[str]) -> WalletStore:
        if not path.is_file():
            raise NotFoundError(f"Backup file not found at: {path}")

        data = read_json(path)
        if isinstance(data, dict) and data.get("encrypted"):
            if password is None:
                password = self._ask_password("Enter the backup file password")
            legacy = is_legacy_envelope(data)
            plaintext = decrypt_blob(data, password)
            try:
                data = json.loads(plaintext.decode("utf-8"))
            except (UnicodeDecodeError, json.JSONDecodeError) as e:
                # Unauthenticated CBC: garbage here means a wrong password
                if legacy:
                    raise DecryptionError() from None
                raise CorruptRecordError("Decrypted backup is not valid JSON") from e

        meta = data.get("_backup") if isinstance(data, dict) else None
        if not isinstance(meta, dict) or meta.get("type") != BACKUP_TYPE:
            raise CorruptRecordError("Invalid backup file: missing backup metadata")

        return WalletStore.from_dict({k: v for k, v in data.items() if k != "_backup"})
