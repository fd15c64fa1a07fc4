"""
commitment_registry/verify.py
Offline verification workflow - only the published root is required.
"""
import json
from dataclasses import dataclass, field
from typing import Any, Dict, List, Union

from .crypto import TREE_DEPTH, constant_time_compare, to_bytes32
from .errors import InvalidProofLength, RegistryError
from .merkle import CommitmentAccumulator, compute_root


@dataclass
class MerkleProof:
    """Portable inclusion proof for a single commitment."""
    commitment: str  # hex-encoded
    leaf_index: int
    siblings: List[str]  # hex-encoded, leaf level first
    root: str  # hex-encoded root the siblings recombine to
    depth: int
    path_indices: List[int] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        return {
            'commitment': self.commitment,
            'leaf_index': self.leaf_index,
            'siblings': list(self.siblings),
            'root': self.root,
            'depth': self.depth,
            'path_indices': list(self.path_indices)
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'MerkleProof':
        depth = data.get('depth', len(data['siblings']))
        return cls(
            commitment=data['commitment'],
            leaf_index=int(data['leaf_index']),
            siblings=list(data['siblings']),
            root=data.get('root', ''),
            depth=depth,
            path_indices=list(
                data.get('path_indices') or path_indices(int(data['leaf_index']), depth)
            )
        )


@dataclass
class VerificationResult:
    """Result of offline proof verification."""
    is_valid: bool
    commitment: str
    leaf_index: int
    error_message: str = ""


def path_indices(leaf_index: int, depth: int) -> List[int]:
    """Per-level position bits of a leaf, leaf level first.

    0 means the running node is a left child at that level, 1 a right
    child. Circuits take these as the private path selector input.
    """
    if leaf_index < 0 or leaf_index >= 1 << depth:
        raise ValueError(f"leaf_index {leaf_index} out of range for depth {depth}")
    return [(leaf_index >> level) & 1 for level in range(depth)]


def create_proof_bundle(
    accumulator: CommitmentAccumulator,
    leaf_index: int
) -> MerkleProof:
    """Package a stored leaf's proof against the current root.

    Args:
        accumulator: Source accumulator
        leaf_index: Index of an inserted leaf

    Returns:
        MerkleProof ready for JSON transport

    Raises:
        InvalidIndex: If leaf_index is not in [0, leaf_count)
    """
    commitment = accumulator.get_commitment(leaf_index)
    siblings = accumulator.generate_proof(leaf_index)
    root = compute_root(commitment, leaf_index, siblings)

    return MerkleProof(
        commitment=commitment.hex(),
        leaf_index=leaf_index,
        siblings=[s.hex() for s in siblings],
        root=root.hex(),
        depth=accumulator.depth,
        path_indices=path_indices(leaf_index, accumulator.depth)
    )


def verify_proof(
    proof: MerkleProof,
    root: Union[bytes, str],
    depth: int = TREE_DEPTH
) -> bool:
    """Check a proof against a published root without any accumulator state.

    The path length is fixed by the tree the root belongs to, never by
    the proof. A shorter path would let an internal node (or the root
    itself) pass as a leaf.

    Args:
        proof: Inclusion proof to check
        root: Published root (bytes or hex)
        depth: Depth of the tree that published root

    Raises:
        InvalidProofLength: If proof.depth or the sibling count differs
            from depth
        ValueError: If any hash is not 32 bytes or the index is out of range
    """
    if proof.depth != depth or len(proof.siblings) != depth:
        raise InvalidProofLength(
            f"Invalid proof length: expected {depth}, got {len(proof.siblings)} "
            f"siblings for declared depth {proof.depth}"
        )
    if proof.leaf_index < 0 or proof.leaf_index >= 1 << depth:
        raise ValueError(f"leaf_index {proof.leaf_index} out of range")
    if proof.path_indices and proof.path_indices != path_indices(proof.leaf_index, depth):
        raise ValueError("path_indices do not match leaf_index")

    commitment = to_bytes32(proof.commitment)
    siblings = [to_bytes32(s) for s in proof.siblings]
    computed = compute_root(commitment, proof.leaf_index, siblings)
    return constant_time_compare(computed, to_bytes32(root))


def verify_offline(
    proof_json: str,
    published_root: Union[bytes, str],
    depth: int = TREE_DEPTH
) -> VerificationResult:
    """Verify a serialized inclusion proof offline.

    This function requires NO access to the accumulator. The root should
    come from a trusted publication channel, not from the proof itself.

    Args:
        proof_json: JSON-serialized MerkleProof
        published_root: Root to verify against (bytes or hex)
        depth: Depth of the tree that published the root

    Returns:
        VerificationResult with validity status
    """
    try:
        proof = MerkleProof.from_dict(json.loads(proof_json))
    except (ValueError, KeyError, TypeError) as e:
        return VerificationResult(
            is_valid=False,
            commitment="",
            leaf_index=-1,
            error_message=f"Malformed proof: {e}"
        )

    try:
        valid = verify_proof(proof, published_root, depth)
    except (RegistryError, ValueError, TypeError) as e:
        return VerificationResult(
            is_valid=False,
            commitment=proof.commitment,
            leaf_index=proof.leaf_index,
            error_message=str(e)
        )

    if not valid:
        return VerificationResult(
            is_valid=False,
            commitment=proof.commitment,
            leaf_index=proof.leaf_index,
            error_message="Merkle proof verification failed"
        )

    return VerificationResult(
        is_valid=True,
        commitment=proof.commitment,
        leaf_index=proof.leaf_index
    )
