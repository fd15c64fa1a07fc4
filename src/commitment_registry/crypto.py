"""
commitment_registry/crypto.py
Fixed-width hashing primitives shared by the accumulator and external provers.
"""
import hmac
import secrets
from typing import List, Union

from eth_utils import keccak

# Registry constants
TREE_DEPTH = 20  # capacity 2**20 leaves
COMMITMENT_LENGTH = 32  # keccak256 output width
EMPTY_VALUE = b'\x00' * COMMITMENT_LENGTH  # reserved "empty slot" marker
SECRET_LENGTH = 32  # 256-bit secrets
MAX_TREE_DEPTH = 64


def keccak256(data: bytes) -> bytes:
    """Keccak-256 as used by the EVM (not NIST SHA3-256)."""
    return keccak(data)


def to_bytes32(value: Union[bytes, bytearray, str]) -> bytes:
    """Normalize a 32-byte value from raw bytes or a hex string.

    Accepts an optional 0x prefix on hex input.

    Raises:
        TypeError: If value is neither bytes nor str
        ValueError: If value is not exactly 32 bytes wide
    """
    if isinstance(value, (bytes, bytearray)):
        raw = bytes(value)
    elif isinstance(value, str):
        text = value[2:] if value[:2].lower() == '0x' else value
        raw = bytes.fromhex(text)
    else:
        raise TypeError("value must be bytes or hex string")
    if len(raw) != COMMITMENT_LENGTH:
        raise ValueError(
            f"expected {COMMITMENT_LENGTH} bytes, got {len(raw)}"
        )
    return raw


def hash_pair(left: bytes, right: bytes) -> bytes:
    """Hash two child nodes into their parent.

    Format: keccak256(left || right)

    Both inputs are fixed-width, so plain concatenation is unambiguous.
    The result is bit-for-bit identical to Solidity's
    keccak256(abi.encodePacked(left, right)) over two bytes32 values,
    which is what an off-chain circuit has to reproduce.

    Args:
        left: 32-byte left child
        right: 32-byte right child

    Returns:
        32-byte parent hash
    """
    if len(left) != COMMITMENT_LENGTH or len(right) != COMMITMENT_LENGTH:
        raise ValueError("hash_pair inputs must be 32 bytes each")
    return keccak256(bytes(left) + bytes(right))


# Public alias: the tree's parent-from-children relation.
combine = hash_pair


def empty_subtree_hashes(depth: int) -> List[bytes]:
    """Hashes of all-empty subtrees for levels 0..depth.

    zeros[0] is EMPTY_VALUE, zeros[n] = hash_pair(zeros[n-1], zeros[n-1]),
    so zeros[depth] is the root of a completely empty tree.
    """
    zeros = [EMPTY_VALUE]
    for _ in range(depth):
        zeros.append(hash_pair(zeros[-1], zeros[-1]))
    return zeros


def generate_secret() -> bytes:
    """Generate a 256-bit secret from the OS CSPRNG.

    NEVER use the random module for secrets.
    """
    return secrets.token_bytes(SECRET_LENGTH)


def generate_commitment(domain_id: int, secret: Union[str, bytes]) -> bytes:
    """Bind a secret to a domain identifier.

    Format: keccak256(uint256(domain_id) || secret)

    Matches solidityPackedKeccak256(["uint256", "string"], [id, secret])
    for string secrets; byte secrets are appended as-is.

    Args:
        domain_id: Non-negative identifier issued by the token ledger
        secret: Owner secret (str is UTF-8 encoded)

    Returns:
        32-byte commitment
    """
    if domain_id < 0 or domain_id >= 1 << 256:
        raise ValueError("domain_id must fit in uint256")
    if isinstance(secret, str):
        secret = secret.encode('utf-8')
    return keccak256(domain_id.to_bytes(32, 'big') + bytes(secret))


def constant_time_compare(a: bytes, b: bytes) -> bool:
    """Compare two byte strings in constant time.

    Use this for every root and token comparison.
    """
    return hmac.compare_digest(a, b)
