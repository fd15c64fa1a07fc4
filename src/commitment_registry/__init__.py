"""
Commitment Registry: private domain-ownership commitments in an append-only Merkle accumulator.

An administrative authority inserts opaque commitments into a fixed-depth
tree; anyone can later prove or verify that a commitment is included under
the published root without learning which domain or owner it belongs to.
"""

from .crypto import (
    keccak256,
    hash_pair,
    combine,
    empty_subtree_hashes,
    generate_secret,
    generate_commitment,
    to_bytes32,
    constant_time_compare,
    TREE_DEPTH,
    COMMITMENT_LENGTH,
    EMPTY_VALUE,
)

from .errors import (
    RegistryError,
    PermissionDenied,
    InvalidCommitment,
    DuplicateCommitment,
    TreeFull,
    InvalidIndex,
    InvalidProofLength,
    CommitmentMismatch,
)

from .events import (
    CommitmentAdded,
    RootUpdated,
    EventLog,
)

from .merkle import (
    AccumulatorSnapshot,
    CommitmentAccumulator,
    InserterCapability,
    compute_root,
)

from .verify import (
    MerkleProof,
    VerificationResult,
    path_indices,
    create_proof_bundle,
    verify_proof,
    verify_offline,
)

__version__ = "0.1.0"

__all__ = [
    # Crypto
    "keccak256",
    "hash_pair",
    "combine",
    "empty_subtree_hashes",
    "generate_secret",
    "generate_commitment",
    "to_bytes32",
    "constant_time_compare",
    "TREE_DEPTH",
    "COMMITMENT_LENGTH",
    "EMPTY_VALUE",
    # Errors
    "RegistryError",
    "PermissionDenied",
    "InvalidCommitment",
    "DuplicateCommitment",
    "TreeFull",
    "InvalidIndex",
    "InvalidProofLength",
    "CommitmentMismatch",
    # Events
    "CommitmentAdded",
    "RootUpdated",
    "EventLog",
    # Merkle
    "AccumulatorSnapshot",
    "CommitmentAccumulator",
    "InserterCapability",
    "compute_root",
    # Verify
    "MerkleProof",
    "VerificationResult",
    "path_indices",
    "create_proof_bundle",
    "verify_proof",
    "verify_offline",
    # Meta
    "__version__",
]
