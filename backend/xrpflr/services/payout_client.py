"""Reward-chain (Flare) payout client: native FLR transfers from the admin wallet."""

from decimal import Decimal

import structlog
from eth_account import Account
from eth_account.signers.local import LocalAccount
from web3 import Web3

from config import get_settings
from xrpflr.services.errors import PayoutError, PayoutNotConfiguredError
from xrpflr.services.schemas.results import PayoutReceipt

logger = structlog.get_logger(__name__)


class PayoutClient:
    def __init__(
        self,
        rpc_url: str | None = None,
        private_key: str | None = None,
        gas_limit: int | None = None,
        receipt_timeout: int | None = None,
    ) -> None:
        settings = get_settings().reward_chain
        self.rpc_url: str = rpc_url or settings.rpc_url
        self.gas_limit: int = gas_limit or settings.gas_limit
        self.receipt_timeout: int = receipt_timeout or settings.receipt_timeout
        key: str | None = private_key or settings.admin_private_key
        self._account: LocalAccount | None = Account.from_key(key) if key else None
        self._w3: Web3 | None = None

    @property
    def configured(self) -> bool:
        return self._account is not None

    @property
    def admin_address(self) -> str | None:
        return self._account.address if self._account else None

    def _web3(self) -> Web3:
        if self._w3 is None:
            self._w3 = Web3(Web3.HTTPProvider(self.rpc_url))
        return self._w3

    def _require_account(self) -> LocalAccount:
        if self._account is None:
            raise PayoutNotConfiguredError("Reward-chain admin key is not configured")
        return self._account

    def admin_balance(self) -> Decimal:
        """Admin wallet balance in FLR."""
        account = self._require_account()
        try:
            wei: int = self._web3().eth.get_balance(account.address)
        except Exception as e:
            raise PayoutError(f"Could not read admin balance: {e}") from e
        return Decimal(wei) / Decimal(10**18)

    @staticmethod
    def is_valid_recipient(recipient: str) -> bool:
        return bool(recipient) and Web3.is_address(recipient)

    @classmethod
    def validate(cls, recipient: str, amount: float) -> str:
        """Checksummed recipient, or PayoutError for a bad address or amount."""
        if not cls.is_valid_recipient(recipient):
            raise PayoutError(f"Invalid payout address: {recipient!r}")
        if amount <= 0:
            raise PayoutError("Payout amount must be greater than 0")
        return Web3.to_checksum_address(recipient)

    def send(self, recipient: str, amount: float) -> PayoutReceipt:
        to_address: str = self.validate(recipient, amount)
        account = self._require_account()
        w3 = self._web3()

        value_wei: int = w3.to_wei(Decimal(str(amount)), "ether")
        balance: Decimal = self.admin_balance()
        if balance * Decimal(10**18) < value_wei:
            raise PayoutError(
                f"Insufficient balance. Admin wallet has {balance} FLR, trying to send {amount} FLR"
            )

        try:
            tx = {
                "to": to_address,
                "value": value_wei,
                "gas": self.gas_limit,
                "gasPrice": w3.eth.gas_price,
                "nonce": w3.eth.get_transaction_count(account.address),
                "chainId": w3.eth.chain_id,
            }
            signed = account.sign_transaction(tx)
            tx_hash = w3.eth.send_raw_transaction(signed.raw_transaction)
            logger.info(
                "FLR payout sent",
                sender=account.address,
                recipient=to_address,
                amount=amount,
                tx_hash=Web3.to_hex(tx_hash),
            )
            receipt = w3.eth.wait_for_transaction_receipt(tx_hash, timeout=self.receipt_timeout)
        except Exception as e:
            raise PayoutError(f"FLR transfer failed: {e}") from e

        confirmed: bool = receipt["status"] == 1
        result = PayoutReceipt(
            tx_hash=Web3.to_hex(tx_hash),
            block_number=receipt.get("blockNumber"),
            sender=account.address,
            recipient=to_address,
            amount=amount,
            confirmed=confirmed,
        )
        if not confirmed:
            raise PayoutError(f"FLR transfer {result.tx_hash} reverted")
        return result
