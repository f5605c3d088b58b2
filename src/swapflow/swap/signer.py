"""Wallet capability used by the allowance manager and the execution engine.

``WalletGateway`` is what the engine needs from a connected wallet. The
bundled ``LocalEVMWallet`` signs with a private key (eth-account) and talks
to the chain over JSON-RPC (web3.py); browser or hardware wallets plug in by
implementing the same interface.
"""

import asyncio
import logging
import threading
import time
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Callable, Optional

from swapflow.chains import get_rpc_url
from swapflow.routing.base import TransactionPayload
from swapflow.utils.addresses import is_native_address, to_address

logger = logging.getLogger(__name__)

ERC20_ABI = [
    {
        "inputs": [{"name": "owner", "type": "address"}, {"name": "spender", "type": "address"}],
        "name": "allowance",
        "outputs": [{"name": "", "type": "uint256"}],
        "stateMutability": "view",
        "type": "function",
    },
    {
        "inputs": [{"name": "spender", "type": "address"}, {"name": "amount", "type": "uint256"}],
        "name": "approve",
        "outputs": [{"name": "", "type": "bool"}],
        "stateMutability": "nonpayable",
        "type": "function",
    },
    {
        "inputs": [{"name": "account", "type": "address"}],
        "name": "balanceOf",
        "outputs": [{"name": "", "type": "uint256"}],
        "stateMutability": "view",
        "type": "function",
    },
]


class WalletError(Exception):
    """Raised by wallet operations (RPC failure, rejected signature, revert)."""

    def __init__(self, message: str, details: Optional[str] = None):
        super().__init__(message)
        self.message = message
        self.details = details


@dataclass
class TransactionReceipt:
    """Mined transaction outcome."""

    tx_hash: str
    status: int
    block_number: Optional[int] = None
    gas_used: Optional[int] = None
    raw: dict = field(default_factory=dict)

    @property
    def success(self) -> bool:
        return self.status == 1


class WalletGateway(ABC):
    """Abstract connected wallet."""

    @property
    @abstractmethod
    def address(self) -> str:
        """Owner address (checksummed)."""
        pass

    @abstractmethod
    async def get_chain_id(self) -> int:
        """Chain the wallet is currently connected to."""
        pass

    @abstractmethod
    async def switch_chain(self, chain_id: int) -> None:
        """Connect the wallet to another chain. Raises WalletError."""
        pass

    @abstractmethod
    async def estimate_gas(self, payload: TransactionPayload) -> int:
        """Estimate gas for a transaction. Raises WalletError with details."""
        pass

    @abstractmethod
    async def sign_and_send(self, payload: TransactionPayload, gas_limit: int) -> str:
        """Sign and broadcast a transaction; returns its hash."""
        pass

    @abstractmethod
    async def wait_for_receipt(self, tx_hash: str, chain_id: int) -> TransactionReceipt:
        """Wait until a transaction is mined."""
        pass

    @abstractmethod
    async def read_allowance(self, chain_id: int, token: str, owner: str, spender: str) -> int:
        """ERC-20 ``allowance(owner, spender)`` in raw units."""
        pass

    @abstractmethod
    async def send_approval(self, chain_id: int, token: str, spender: str, amount: int) -> str:
        """Broadcast ERC-20 ``approve(spender, amount)``; returns the tx hash."""
        pass

    @abstractmethod
    async def read_balance(self, chain_id: int, token: str) -> int:
        """Balance of the owner in raw units (native coin for the native address)."""
        pass


class LocalEVMWallet(WalletGateway):
    """Private-key wallet for EVM chains.

    Keeps one lazily created web3 instance per chain and a nonce cache so
    back-to-back approval and swap transactions never reuse a nonce.
    """

    # Class-level nonce cache shared by wallets of the same address
    _nonce_cache: dict[tuple[int, str], int] = {}
    _nonce_lock = threading.Lock()

    def __init__(
        self,
        private_key: str,
        chain_id: int = 1,
        rpc_url_for: Callable[[int], Optional[str]] = get_rpc_url,
        receipt_timeout: float = 300.0,
        receipt_poll_interval: float = 2.0,
    ):
        from eth_account import Account

        self._account = Account.from_key(private_key)
        self._chain_id = chain_id
        self._rpc_url_for = rpc_url_for
        self.receipt_timeout = receipt_timeout
        self.receipt_poll_interval = receipt_poll_interval
        self._web3: dict[int, object] = {}

    @property
    def address(self) -> str:
        return self._account.address

    def web3(self, chain_id: Optional[int] = None):
        """Lazy load the web3 instance for a chain."""
        chain_id = chain_id or self._chain_id
        if chain_id not in self._web3:
            rpc_url = self._rpc_url_for(chain_id)
            if not rpc_url:
                raise WalletError(f"No RPC endpoint configured for chain {chain_id}")
            from web3 import Web3
            self._web3[chain_id] = Web3(Web3.HTTPProvider(rpc_url))
        return self._web3[chain_id]

    def _get_next_nonce(self, chain_id: int) -> int:
        """Next nonce, never lower than one already handed out."""
        key = (chain_id, self.address)
        with self._nonce_lock:
            chain_nonce = self.web3(chain_id).eth.get_transaction_count(self.address, "pending")
            next_nonce = max(chain_nonce, self._nonce_cache.get(key, 0))
            self._nonce_cache[key] = next_nonce + 1
            return next_nonce

    def _reset_nonce_cache(self, chain_id: int) -> None:
        with self._nonce_lock:
            self._nonce_cache.pop((chain_id, self.address), None)

    def _tx_params(self, payload: TransactionPayload) -> dict:
        from web3 import Web3

        params = {
            "from": self.address,
            "to": Web3.to_checksum_address(payload.to),
            "data": payload.data,
            "value": payload.value,
            "chainId": payload.chain_id,
        }
        if payload.gas_price:
            params["gasPrice"] = payload.gas_price
        return params

    async def get_chain_id(self) -> int:
        return self._chain_id

    async def switch_chain(self, chain_id: int) -> None:
        try:
            remote_chain_id = self.web3(chain_id).eth.chain_id
        except WalletError:
            raise
        except Exception as e:
            raise WalletError(f"Failed to switch chain to {chain_id}", details=str(e))
        if remote_chain_id != chain_id:
            raise WalletError(
                f"RPC endpoint reports chain {remote_chain_id}, expected {chain_id}"
            )
        logger.info(f"Wallet {self.address} switched to chain {chain_id}")
        self._chain_id = chain_id

    async def estimate_gas(self, payload: TransactionPayload) -> int:
        try:
            return int(self.web3(payload.chain_id).eth.estimate_gas(self._tx_params(payload)))
        except WalletError:
            raise
        except Exception as e:
            raise WalletError("Gas estimation failed", details=str(e))

    async def sign_and_send(self, payload: TransactionPayload, gas_limit: int) -> str:
        chain_id = payload.chain_id
        w3 = self.web3(chain_id)
        try:
            tx = self._tx_params(payload)
            tx["gas"] = gas_limit
            if "gasPrice" not in tx:
                tx["gasPrice"] = w3.eth.gas_price
        except Exception as e:
            raise WalletError("Transaction broadcast failed", details=str(e))

        try:
            tx["nonce"] = self._get_next_nonce(chain_id)
            signed_tx = self._account.sign_transaction(tx)
            # web3.py 6.x uses raw_transaction, older versions use rawTransaction
            raw_tx = getattr(signed_tx, "raw_transaction", None) or signed_tx.rawTransaction
            tx_hash = w3.eth.send_raw_transaction(raw_tx).hex()
        except Exception as e:
            # Reset nonce cache on failure so next tx gets fresh nonce
            self._reset_nonce_cache(chain_id)
            raise WalletError("Transaction broadcast failed", details=str(e))

        if not tx_hash.startswith("0x"):
            tx_hash = "0x" + tx_hash
        logger.info(f"Sent tx {tx_hash} on chain {chain_id}")
        return tx_hash

    async def wait_for_receipt(self, tx_hash: str, chain_id: int) -> TransactionReceipt:
        """Poll for the receipt until it is mined or the timeout elapses."""
        from web3.exceptions import TransactionNotFound

        w3 = self.web3(chain_id)
        deadline = time.monotonic() + self.receipt_timeout

        while time.monotonic() < deadline:
            try:
                receipt = w3.eth.get_transaction_receipt(tx_hash)
            except TransactionNotFound:
                receipt = None
            except Exception as e:
                logger.warning(f"RPC error fetching receipt for {tx_hash}: {e}")
                receipt = None

            if receipt is not None:
                return TransactionReceipt(
                    tx_hash=tx_hash,
                    status=int(receipt["status"]),
                    block_number=receipt.get("blockNumber"),
                    gas_used=receipt.get("gasUsed"),
                    raw=dict(receipt),
                )
            await asyncio.sleep(self.receipt_poll_interval)

        raise WalletError(f"Transaction {tx_hash} not confirmed after {self.receipt_timeout}s")

    def _erc20(self, chain_id: int, token: str):
        from web3 import Web3
        return self.web3(chain_id).eth.contract(
            address=Web3.to_checksum_address(token),
            abi=ERC20_ABI,
        )

    async def read_allowance(self, chain_id: int, token: str, owner: str, spender: str) -> int:
        from web3 import Web3
        try:
            return int(
                self._erc20(chain_id, token).functions.allowance(
                    Web3.to_checksum_address(owner),
                    Web3.to_checksum_address(spender),
                ).call()
            )
        except Exception as e:
            raise WalletError(f"Failed to read allowance of {token}", details=str(e))

    async def send_approval(self, chain_id: int, token: str, spender: str, amount: int) -> str:
        from web3 import Web3
        contract = self._erc20(chain_id, token)
        try:
            tx = contract.functions.approve(
                Web3.to_checksum_address(spender), amount
            ).build_transaction({"from": self.address, "chainId": chain_id})
        except Exception as e:
            raise WalletError("Failed to build approval", details=str(e))

        payload = TransactionPayload(
            to=to_address(token),
            data=tx["data"],
            value=0,
            chain_id=chain_id,
            gas_limit=int(tx.get("gas") or 0),
        )
        gas_limit = payload.gas_limit or await self.estimate_gas(payload)
        logger.info(f"Approving {amount} of {token} for {spender}")
        return await self.sign_and_send(payload, gas_limit)

    async def read_balance(self, chain_id: int, token: str) -> int:
        try:
            if is_native_address(token):
                return int(self.web3(chain_id).eth.get_balance(self.address))
            return int(self._erc20(chain_id, token).functions.balanceOf(self.address).call())
        except WalletError:
            raise
        except Exception as e:
            raise WalletError(f"Failed to read balance of {token}", details=str(e))
