import pytest
from eth_account import Account
from eth_account.messages import encode_defunct, encode_typed_data

from services.signing import SigningService
from wallet import DecryptionError, NoWalletError

STRONG = "Tr0ub4dor&3"

TYPED_DATA = {
    "types": {
        "EIP712Domain": [
            {"name": "name", "type": "string"},
            {"name": "version", "type": "string"},
            {"name": "chainId", "type": "uint256"},
        ],
        "Mail": [
            {"name": "to", "type": "address"},
            {"name": "contents", "type": "string"},
        ],
    },
    "primaryType": "Mail",
    "domain": {"name": "Test", "version": "1", "chainId": 31},
    "message": {"to": "0x2B5AD5c4795c026514f8317c7a215E218DcCD6cF", "contents": "hello"},
}


@pytest.fixture
def service(manager) -> SigningService:
    return SigningService(manager)


def test_current_address_requires_wallet(service) -> None:
    with pytest.raises(NoWalletError):
        service.get_current_address()


def test_sign_message_recovers_to_wallet_address(service, manager) -> None:
    info = manager.create_wallet("alice", STRONG)
    signed = service.sign_message("hello", password=STRONG)
    recovered = Account.recover_message(encode_defunct(text="hello"), signature=signed.signature)
    assert recovered == info.address == service.get_current_address()


def test_sign_typed_data(service, manager) -> None:
    info = manager.create_wallet("alice", STRONG)
    signed = service.sign_typed_data(TYPED_DATA, "alice", STRONG)
    recovered = Account.recover_message(encode_typed_data(full_message=TYPED_DATA),
                                        signature=signed.signature)
    assert recovered == info.address


def test_unlocked_account(service, manager) -> None:
    info = manager.create_wallet("alice", STRONG)
    with service.unlocked_account("alice", STRONG) as account:
        assert account.address == info.address


def test_wrong_password_does_not_sign(service, manager) -> None:
    manager.create_wallet("alice", STRONG)
    with pytest.raises(DecryptionError):
        service.sign_message("hello", password="wrong password")


def test_list_wallets(service, manager) -> None:
    manager.create_wallet("alice", STRONG)
    assert [w.name for w in service.list_wallets()] == ["alice"]
    assert service.get_address("alice") == service.get_current_address()
