"""Tests for xrpflr.services.payout_client (no network)."""

import pytest
from eth_account import Account
from web3 import Web3

from xrpflr.services.errors import PayoutError, PayoutNotConfiguredError
from xrpflr.services.payout_client import PayoutClient

RECIPIENT: str = "0xde0b295669a9fd93d5f28d9ec85e40f4cb697bae"


def test_recipient_validation() -> None:
    assert PayoutClient.is_valid_recipient(RECIPIENT) is True
    assert PayoutClient.is_valid_recipient("") is False
    assert PayoutClient.is_valid_recipient("0x1234") is False
    assert PayoutClient.is_valid_recipient("rJoyoiwgogxk2bA3UBBfZthrb8LdUmocaF") is False


def test_validate_checksums_recipient() -> None:
    assert PayoutClient.validate(RECIPIENT, 1.0) == Web3.to_checksum_address(RECIPIENT)


@pytest.mark.parametrize(("recipient", "amount"), [("0x1234", 1.0), (RECIPIENT, 0.0), (RECIPIENT, -2.0)])
def test_validate_rejects_bad_input(recipient: str, amount: float) -> None:
    with pytest.raises(PayoutError):
        PayoutClient.validate(recipient, amount)


def test_unconfigured_client_refuses_to_send() -> None:
    client = PayoutClient(rpc_url="http://127.0.0.1:1", private_key="")
    assert client.configured is False
    assert client.admin_address is None
    with pytest.raises(PayoutNotConfiguredError):
        client.send(RECIPIENT, 1.0)


def test_admin_address_from_key() -> None:
    account = Account.create()
    client = PayoutClient(rpc_url="http://127.0.0.1:1", private_key=Web3.to_hex(account.key))
    assert client.configured is True
    assert client.admin_address == account.address


def test_invalid_recipient_fails_before_network() -> None:
    account = Account.create()
    client = PayoutClient(rpc_url="http://127.0.0.1:1", private_key=Web3.to_hex(account.key))
    with pytest.raises(PayoutError, match="Invalid payout address"):
        client.send("nope", 1.0)
