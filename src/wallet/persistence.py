"""
Store Persistence - Atomic read/write of the wallet file.

The full new content is written to a temp file in the same directory,
flushed to disk, then renamed over the real file. A reader sees either the
old file or the new one, never a mix. There is no locking: two processes
saving at once both succeed and the last rename wins.
"""

import json
import logging
import os
import tempfile
from contextlib import contextmanager
from pathlib import Path
from typing import Iterator, Union

from .crypto import set_secure_permissions
from .errors import CorruptRecordError, PersistenceError
from .store import WalletStore

logger = logging.getLogger(__name__)


def serialize(data: dict) -> str:
    """The exact text written to disk for a given dict."""
    return json.dumps(data, indent=2) + "\n"


def atomic_write_text(filepath: Path, text: str) -> None:
    """
    Write text to filepath so the file is never observed half-written.

    Raises: PersistenceError (the previous file, if any, is left untouched).
    """
    filepath = Path(filepath)
    temp_path = None
    try:
        filepath.parent.mkdir(parents=True, exist_ok=True)
        fd, temp_name = tempfile.mkstemp(
            dir=filepath.parent, prefix=f".{filepath.name}.", suffix=".tmp"
        )
        temp_path = Path(temp_name)
        with os.fdopen(fd, "w", encoding="utf-8") as f:
            f.write(text)
            f.flush()
            os.fsync(f.fileno())
        set_secure_permissions(temp_path)
        os.replace(temp_path, filepath)
        temp_path = None
    except OSError as e:
        raise PersistenceError(f"Could not write {filepath}: {e.strerror or e}") from e
    finally:
        if temp_path is not None:
            try:
                temp_path.unlink()
            except OSError:
                logger.warning(f"Could not remove temp file {temp_path}")


def read_json(filepath: Path) -> dict:
    """Read a JSON document, mapping parse failures to CorruptRecordError."""
    try:
        with open(filepath, "r", encoding="utf-8") as f:
            return json.load(f)
    except (json.JSONDecodeError, UnicodeDecodeError) as e:
        raise CorruptRecordError(f"{filepath} is not valid JSON") from e


class StoreGateway:
    """Loads and saves a WalletStore from a single JSON file."""

    def __init__(self, filepath: Union[str, Path]):
        self.filepath = Path(filepath)

    def exists(self) -> bool:
        return self.filepath.exists()

    def load(self) -> WalletStore:
        """Read the store. A missing file yields an empty store."""
        if not self.filepath.exists():
            logger.debug(f"No wallet file at {self.filepath}, starting empty")
            return WalletStore()
        return WalletStore.from_dict(read_json(self.filepath))

    def save(self, store: WalletStore) -> None:
        """Write the whole store atomically."""
        atomic_write_text(self.filepath, serialize(store.to_dict()))
        logger.debug(f"Saved wallet file {self.filepath}")

    @contextmanager
    def transaction(self, store: WalletStore) -> Iterator[WalletStore]:
        """
        Apply a block of mutations and save once.

        If the block raises, or the save fails, the in-memory store is put
        back exactly as it was and the file is not touched.
        """
        snapshot = store.snapshot()
        try:
            yield store
            self.save(store)
        except BaseException:
            store.restore(snapshot)
            raise
