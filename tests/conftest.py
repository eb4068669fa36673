"""Pytest hooks and fixtures."""

from collections import deque

import pytest

from wallet import PasswordPolicy, StoreGateway, StrengthScore, WalletManager, AddressBook


def fixed_scorer(password: str) -> StrengthScore:
    """Deterministic stand-in for zxcvbn: long passwords are strong."""
    return StrengthScore(score=4 if len(password) >= 10 else 1, warning="Too short to be safe")


class ScriptedPrompter:
    """Prompter that replays canned answers and records what was asked."""

    def __init__(self, texts=(), passwords=(), confirms=(), choices=()):
        self.texts = deque(texts)
        self.passwords = deque(passwords)
        self.confirms = deque(confirms)
        self.choices = deque(choices)
        self.asked = []

    def text(self, message, default=None):
        self.asked.append(message)
        return self.texts.popleft() if self.texts else default

    def password(self, message, confirm=False):
        self.asked.append(message)
        return self.passwords.popleft()

    def confirm(self, message, default=False):
        self.asked.append(message)
        return self.confirms.popleft() if self.confirms else default

    def choose(self, message, choices, default=None):
        self.asked.append(message)
        answer = self.choices.popleft() if self.choices else default
        assert answer in choices
        return answer


@pytest.fixture
def policy() -> PasswordPolicy:
    return PasswordPolicy(scorer=fixed_scorer)


@pytest.fixture
def store_path(tmp_path):
    return tmp_path / "rootstock-wallet.json"


@pytest.fixture
def gateway(store_path) -> StoreGateway:
    return StoreGateway(store_path)


@pytest.fixture
def manager(gateway, policy) -> WalletManager:
    return WalletManager(gateway, policy=policy)


@pytest.fixture
def address_book(manager, policy) -> AddressBook:
    return AddressBook(manager.gateway, store=manager.store, policy=policy)


@pytest.fixture
def prompter_factory():
    return ScriptedPrompter
