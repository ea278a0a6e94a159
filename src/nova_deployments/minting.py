"""Witness-gated minting against a deployed contract."""

import logging
from dataclasses import dataclass
from typing import Any, Dict, List, Optional, Sequence

from . import witness
from .gateway import ContractHandle

logger = logging.getLogger(__name__)


@dataclass
class MintReceipt:
    """One mint transaction and the recipient's balance around it."""

    receipt: Dict[str, Any]
    balance_before: int
    balance_after: int

    @property
    def transaction_hash(self) -> Optional[str]:
        tx_hash = self.receipt.get("transactionHash")
        if tx_hash is None:
            return None
        return tx_hash if isinstance(tx_hash, str) else "0x" + bytes(tx_hash).hex()


def mint_method_signature(token_args: Sequence[Any]) -> str:
    """Overload of ``safeMint`` matching the extra arguments, e.g. ``safeMint(address,string,bytes)``."""
    types = ["address"]
    for arg in token_args:
        if isinstance(arg, str):
            types.append("string")
        elif isinstance(arg, bool):
            types.append("bool")
        elif isinstance(arg, int):
            types.append("uint256")
        else:
            raise TypeError(f"Cannot infer ABI type of mint argument {arg!r}; pass method explicitly")
    types.append("bytes")
    return f"safeMint({','.join(types)})"


def mint_with_witness(
    contract: ContractHandle,
    recipient: str,
    category: str,
    witness_key: Optional[str],
    token_args: Sequence[Any] = (),
    method: Optional[str] = None,
) -> MintReceipt:
    """
    Mint to ``recipient`` with a fresh witness signature.

    The call is ``method(recipient, *token_args, signature)`` and blocks
    until the transaction is mined.

    Raises:
        MissingSignerKeyError: If no witness key is supplied
    """
    signature = witness.sign(recipient, category, witness_key)
    method = method or mint_method_signature(token_args)

    balance_before = contract.call("balanceOf", recipient)
    receipt = contract.send_and_wait(method, recipient, *token_args, signature)
    balance_after = contract.call("balanceOf", recipient)

    result = MintReceipt(receipt, balance_before, balance_after)
    logger.info(
        "Minted %s to %s (tx %s), balance %s -> %s",
        category,
        recipient,
        result.transaction_hash,
        balance_before,
        balance_after,
    )
    return result


def mint_many(
    contract: ContractHandle,
    recipient: str,
    category: str,
    witness_key: Optional[str],
    token_args_list: Sequence[Sequence[Any]],
    method: Optional[str] = None,
) -> List[MintReceipt]:
    """
    Mint once per entry of ``token_args_list``, strictly in order.

    Each transaction is mined before the next is submitted so nonces stay in
    sequence. The first failure stops the loop and propagates.
    """
    return [
        mint_with_witness(contract, recipient, category, witness_key, token_args, method)
        for token_args in token_args_list
    ]
