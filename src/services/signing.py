"""
Signing Service - The narrow interface other commands use.

Transfer, balance and contract commands never read the wallet file. They ask
this service for wallet names and addresses, and for a signature made with a
key that is unlocked for that one call only.
"""

import logging
from contextlib import contextmanager
from typing import Iterator, Optional

from eth_account import Account
from eth_account.messages import encode_defunct, encode_typed_data
from eth_account.signers.local import LocalAccount

from wallet import WalletManager, WalletInfo

logger = logging.getLogger(__name__)


class SigningService:
    """
    Collaborator facade over a WalletManager.

    Usage:
        service = SigningService(WalletManager.open(path))
        signed = service.sign_message("hello", password="...")
        signed.signature.hex()
    """

    def __init__(self, manager: WalletManager):
        self.manager = manager

    def list_wallets(self) -> list[WalletInfo]:
        return self.manager.list_wallets()

    def get_current_address(self) -> str:
        return self.manager.get_current_address()

    def get_address(self, name: Optional[str] = None) -> str:
        return self.manager.get_address(name)

    def unlock(self, name: Optional[str] = None, password: Optional[str] = None) -> bytes:
        """Raw private key of a wallet. Do not keep it."""
        return self.manager.unlock(name, password)

    @contextmanager
    def unlocked_account(self, name: Optional[str] = None,
                         password: Optional[str] = None) -> Iterator[LocalAccount]:
        """
        Yield a signing account for the duration of the block.

        Raises the manager's errors (NotFoundError, DecryptionError) before
        the block runs.
        """
        account = Account.from_key(self.manager.unlock(name, password))
        try:
            yield account
        finally:
            del account

    def sign_message(self, message, name: Optional[str] = None, password: Optional[str] = None):
        """
        Sign an EIP-191 personal message (str or bytes).

        Returns: eth_account SignedMessage
        """
        if isinstance(message, str):
            encoded = encode_defunct(text=message)
        else:
            encoded = encode_defunct(primitive=bytes(message))

        with self.unlocked_account(name, password) as account:
            signed = account.sign_message(encoded)
            logger.info(f"Signed message with {account.address}")
        return signed

    def sign_typed_data(self, typed_data: dict, name: Optional[str] = None,
                        password: Optional[str] = None):
        """
        Sign EIP-712 typed data given as a full message
        (types, primaryType, domain, message).
        """
        encoded = encode_typed_data(full_message=typed_data)
        with self.unlocked_account(name, password) as account:
            signed = account.sign_message(encoded)
            logger.info(f"Signed typed data with {account.address}")
        return signed
