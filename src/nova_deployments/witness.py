"""
Witness authorization signatures for gated mint calls.

A witness signature binds a recipient address to a category label (the mint
campaign, e.g. "NOVA-SBT-1"). The minting contract rebuilds the same digest
and checks that it was signed by its configured witness account, so the
encoding here must match the contract byte for byte:

    digest = keccak256(abi.encodePacked(address recipient, string category))

The digest is signed as an EIP-191 personal message, matching
``ECDSA.toEthSignedMessageHash(digest)`` on chain. Signing is deterministic
(RFC 6979): identical inputs always yield identical signatures.
"""

from typing import Optional

from eth_account import Account
from eth_account.messages import encode_defunct
from eth_keys.exceptions import BadSignature
from eth_keys.exceptions import ValidationError as KeyValidationError
from eth_utils import is_address, keccak, to_canonical_address, to_checksum_address

from .exceptions import MissingSignerKeyError


def witness_message(recipient: str, category: str) -> bytes:
    """
    Build the 32-byte digest a witness signs.

    Args:
        recipient: Recipient address (hex, any case)
        category: Category label

    Returns:
        keccak256 of the 20 raw address bytes followed by the UTF-8 label

    Raises:
        ValueError: If recipient is not an address
    """
    if not is_address(recipient):
        raise ValueError(f"Invalid recipient address: {recipient!r}")
    return keccak(to_canonical_address(recipient) + category.encode("utf-8"))


def sign(recipient: str, category: str, signer_key: Optional[str]) -> bytes:
    """
    Produce a witness signature for ``(recipient, category)``.

    Args:
        recipient: Address allowed to receive the mint
        category: Category label the signature is valid for
        signer_key: Witness private key (hex)

    Returns:
        65-byte signature (r || s || v)

    Raises:
        MissingSignerKeyError: If no signer key is supplied
        ValueError: If recipient is not an address
    """
    if not signer_key:
        raise MissingSignerKeyError(
            "Witness signer key missing: provide WITNESS_SIGNER_PRIVATE_KEY"
        )
    message = encode_defunct(primitive=witness_message(recipient, category))
    signed = Account.sign_message(message, private_key=signer_key)
    return bytes(signed.signature)


def sign_hex(recipient: str, category: str, signer_key: Optional[str]) -> str:
    """Same as :func:`sign`, as 0x-prefixed hex."""
    return "0x" + sign(recipient, category, signer_key).hex()


def recover_signer(recipient: str, category: str, signature: bytes) -> str:
    """Recover the checksummed address that signed ``(recipient, category)``."""
    message = encode_defunct(primitive=witness_message(recipient, category))
    return to_checksum_address(Account.recover_message(message, signature=signature))


def verify(recipient: str, category: str, signature: bytes, expected_signer: str) -> bool:
    """
    Check a witness signature against the expected witness address.

    Malformed signatures verify as False rather than raising.
    """
    try:
        signer = recover_signer(recipient, category, signature)
    except (BadSignature, KeyValidationError, ValueError, TypeError):
        return False
    return signer == to_checksum_address(expected_signer)
