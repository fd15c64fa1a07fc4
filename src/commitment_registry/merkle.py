"""
commitment_registry/merkle.py
Append-only fixed-depth Merkle accumulator over opaque commitments.
"""
import json
import logging
import secrets
import threading
from dataclasses import dataclass
from typing import Dict, List, Optional, Sequence, Tuple, Union

from .crypto import (
    EMPTY_VALUE,
    MAX_TREE_DEPTH,
    TREE_DEPTH,
    constant_time_compare,
    empty_subtree_hashes,
    hash_pair,
    to_bytes32,
)
from .errors import (
    CommitmentMismatch,
    DuplicateCommitment,
    InvalidCommitment,
    InvalidIndex,
    InvalidProofLength,
    PermissionDenied,
    RegistryError,
    TreeFull,
)
from .events import CommitmentAdded, Event, EventLog, Listener, RootUpdated

logger = logging.getLogger(__name__)

BytesLike = Union[bytes, bytearray, str]


@dataclass(frozen=True)
class InserterCapability:
    """Opaque token granting the right to insert commitments.

    Whoever holds the token is the administrative authority; transferring
    it is the holder's business and happens outside this module.
    """
    token: bytes

    @classmethod
    def generate(cls) -> 'InserterCapability':
        return cls(token=secrets.token_bytes(32))

    def __repr__(self) -> str:
        return "InserterCapability(<redacted>)"


@dataclass(frozen=True)
class AccumulatorSnapshot:
    """Consistent read-only view of the published state."""
    root: bytes
    leaf_count: int
    depth: int
    capacity: int


def compute_root(
    commitment: bytes,
    leaf_index: int,
    proof: Sequence[bytes]
) -> bytes:
    """Recombine a leaf with its sibling path up to a root.

    At each level an even index means the running node is a left child.

    Args:
        commitment: 32-byte leaf value
        leaf_index: Position of the leaf
        proof: Sibling hashes ordered from leaf level upward

    Returns:
        32-byte root implied by the path
    """
    computed = commitment
    idx = leaf_index
    for sibling in proof:
        if idx % 2 == 0:
            computed = hash_pair(computed, sibling)
        else:
            computed = hash_pair(sibling, computed)
        idx //= 2
    return computed


class CommitmentAccumulator:
    """Incremental Merkle accumulator with proof generation and verification.

    The tree has a fixed depth; every position without a real commitment
    is logically EMPTY_VALUE. Insertion touches one frontier slot per level
    and never rebuilds the tree. Proof generation ignores the frontier and
    recomputes siblings from the stored leaves, so the two paths are
    independent and must always agree on the root.

    Every root ever published is kept so that proofs captured against an
    earlier root keep verifying. That history grows by one 32-byte root per
    insertion, so a full tree holds capacity + 1 roots (about 32 MiB plus
    set overhead at the default depth of 20).

    Example:
        owner = InserterCapability.generate()
        acc = CommitmentAccumulator(owner)
        index = acc.insert(commitment, owner)

        proof = acc.generate_proof(index)
        assert acc.verify(commitment, index, proof)
    """

    def __init__(
        self,
        capability: InserterCapability,
        depth: int = TREE_DEPTH
    ):
        if not isinstance(capability, InserterCapability):
            raise TypeError("capability must be an InserterCapability")
        if not isinstance(depth, int) or not 1 <= depth <= MAX_TREE_DEPTH:
            raise ValueError(f"depth must be an integer in [1, {MAX_TREE_DEPTH}]")

        self._capability = capability
        self._depth = depth
        self._capacity = 1 << depth

        # _zeros[level] is the root of an all-empty subtree of that height
        self._zeros: List[bytes] = empty_subtree_hashes(depth)
        # _frontier[level] holds the latest left node seen at that level
        self._frontier: List[bytes] = list(self._zeros[:depth])
        self._root: bytes = self._zeros[depth]
        if constant_time_compare(self._root, EMPTY_VALUE):
            raise RuntimeError("Empty-tree root collapsed to the empty value")

        self._leaves: List[bytes] = []
        self._leaf_index: Dict[bytes, int] = {}
        self._leaf_count = 0
        self._known_roots = {self._root}
        self._events = EventLog()
        self._lock = threading.RLock()

    # ------------------------------------------------------------------
    # Read surface
    # ------------------------------------------------------------------

    @property
    def depth(self) -> int:
        return self._depth

    @property
    def capacity(self) -> int:
        return self._capacity

    @property
    def root(self) -> bytes:
        with self._lock:
            return self._root

    @property
    def leaf_count(self) -> int:
        with self._lock:
            return self._leaf_count

    @property
    def empty_root(self) -> bytes:
        """Root of the tree before any insertion."""
        return self._zeros[self._depth]

    @property
    def events(self) -> Tuple[Event, ...]:
        return self._events.events

    def __len__(self) -> int:
        return self.leaf_count

    def is_full(self) -> bool:
        return self.leaf_count == self._capacity

    def snapshot(self) -> AccumulatorSnapshot:
        with self._lock:
            return AccumulatorSnapshot(
                root=self._root,
                leaf_count=self._leaf_count,
                depth=self._depth,
                capacity=self._capacity
            )

    def get_commitment(self, leaf_index: int) -> bytes:
        """Return the commitment stored at leaf_index.

        Raises:
            InvalidIndex: If leaf_index is not in [0, leaf_count)
        """
        count = self.leaf_count
        self._check_index(leaf_index, count)
        return self._leaves[leaf_index]

    def get_commitments(self) -> Tuple[bytes, ...]:
        with self._lock:
            return tuple(self._leaves[:self._leaf_count])

    def commitment_exists(self, commitment: BytesLike) -> bool:
        """Check whether a commitment is stored at any leaf."""
        return self.index_of(commitment) is not None

    def index_of(self, commitment: BytesLike) -> Optional[int]:
        """Leaf index of a stored commitment, or None."""
        try:
            value = to_bytes32(commitment)
        except (TypeError, ValueError):
            return None
        with self._lock:
            return self._leaf_index.get(value)

    def is_known_root(self, root: BytesLike) -> bool:
        """True if root is the current root or any root published before it."""
        try:
            value = to_bytes32(root)
        except (TypeError, ValueError):
            return False
        with self._lock:
            return value in self._known_roots

    def subscribe(self, listener: Listener) -> None:
        """Register a callable invoked with every event after it is committed."""
        self._events.subscribe(listener)

    def unsubscribe(self, listener: Listener) -> None:
        self._events.unsubscribe(listener)

    # ------------------------------------------------------------------
    # Insertion engine
    # ------------------------------------------------------------------

    def insert(
        self,
        commitment: BytesLike,
        capability: InserterCapability
    ) -> int:
        """Append a commitment and republish the root.

        Checks run in a fixed order and nothing is mutated until all
        of them pass.

        Args:
            commitment: 32-byte commitment (bytes or hex)
            capability: Inserter token issued at construction

        Returns:
            Leaf index assigned to the commitment

        Raises:
            PermissionDenied: If capability is not the inserter's token
            InvalidCommitment: If commitment is the empty value or malformed
            TreeFull: If every leaf is occupied
            DuplicateCommitment: If commitment is already stored
        """
        if not self._is_inserter(capability):
            logger.warning("Rejected insertion from unauthorized caller")
            raise PermissionDenied("Caller does not hold the inserter capability")

        try:
            value = to_bytes32(commitment)
        except (TypeError, ValueError) as exc:
            raise InvalidCommitment(str(exc)) from exc
        if constant_time_compare(value, EMPTY_VALUE):
            raise InvalidCommitment("Commitment cannot be the empty value")

        with self._lock:
            if self._leaf_count >= self._capacity:
                raise TreeFull(f"Tree is full ({self._capacity} leaves)")
            if value in self._leaf_index:
                logger.warning("Rejected duplicate commitment %s", value.hex())
                raise DuplicateCommitment("Commitment already exists")

            index = self._leaf_count
            frontier, new_root = self._advance_frontier(value, index)

            old_root = self._root
            self._frontier = frontier
            self._leaves.append(value)
            self._leaf_index[value] = index
            self._root = new_root
            self._known_roots.add(new_root)
            self._leaf_count = index + 1

            published = [
                CommitmentAdded(commitment=value, leaf_index=index, root=new_root),
                RootUpdated(old_root=old_root, new_root=new_root),
            ]
            for event in published:
                self._events.record(event)

            logger.info("Inserted leaf %d, root %s", index, new_root.hex())

        self._events.flush()
        return index

    def _advance_frontier(
        self,
        commitment: bytes,
        index: int
    ) -> Tuple[List[bytes], bytes]:
        # Works on a copy so a failure here leaves the live frontier intact.
        frontier = list(self._frontier)
        current = commitment
        idx = index
        for level in range(self._depth):
            if idx % 2 == 0:
                frontier[level] = current
                current = hash_pair(current, self._zeros[level])
            else:
                current = hash_pair(frontier[level], current)
            idx //= 2
        return frontier, current

    def _is_inserter(self, capability: object) -> bool:
        if not isinstance(capability, InserterCapability):
            return False
        return constant_time_compare(capability.token, self._capability.token)

    # ------------------------------------------------------------------
    # Proof engine
    # ------------------------------------------------------------------

    def generate_proof(self, leaf_index: int) -> List[bytes]:
        """Generate the sibling path for a stored leaf.

        Siblings are recomputed from the stored leaves; positions at or
        beyond leaf_count resolve to the precomputed empty-subtree hash
        of their level, so only populated subtrees are ever hashed.

        Args:
            leaf_index: Index of an inserted leaf

        Returns:
            depth sibling hashes, ordered from leaf level upward

        Raises:
            InvalidIndex: If leaf_index is not in [0, leaf_count)
        """
        count = self.leaf_count
        self._check_index(leaf_index, count)

        memo: Dict[Tuple[int, int], bytes] = {}
        proof = []
        idx = leaf_index
        for level in range(self._depth):
            proof.append(self._subtree_hash(level, idx ^ 1, count, memo))
            idx //= 2

        logger.debug("Generated proof for leaf %d over %d leaves", leaf_index, count)
        return proof

    def recompute_root(self) -> bytes:
        """Root of the zero-padded tree rebuilt from the stored leaves.

        Independent of the frontier cache; always equals root.
        """
        count = self.leaf_count
        return self._subtree_hash(self._depth, 0, count, {})

    def _subtree_hash(
        self,
        level: int,
        position: int,
        count: int,
        memo: Dict[Tuple[int, int], bytes]
    ) -> bytes:
        if position << level >= count:
            return self._zeros[level]
        if level == 0:
            return self._leaves[position]

        key = (level, position)
        if key not in memo:
            memo[key] = hash_pair(
                self._subtree_hash(level - 1, 2 * position, count, memo),
                self._subtree_hash(level - 1, 2 * position + 1, count, memo),
            )
        return memo[key]

    def verify(
        self,
        commitment: BytesLike,
        leaf_index: int,
        proof: Sequence[BytesLike]
    ) -> bool:
        """Verify that commitment sits at leaf_index under a published root.

        Caller identity plays no part. The recombined root is accepted if
        it is the current root or any earlier one; the tree is append-only,
        so inclusion under an earlier root still holds.

        Args:
            commitment: Claimed leaf value
            leaf_index: Claimed leaf position
            proof: depth sibling hashes

        Returns:
            True if the path recombines to a published root; False if it
            does not or a sibling is not a 32-byte value

        Raises:
            InvalidProofLength: If len(proof) != depth
            InvalidIndex: If leaf_index is not in [0, leaf_count)
            CommitmentMismatch: If the stored leaf differs from commitment
        """
        if len(proof) != self._depth:
            raise InvalidProofLength(
                f"Invalid proof length: expected {self._depth}, got {len(proof)}"
            )

        count = self.leaf_count
        self._check_index(leaf_index, count)

        try:
            value = to_bytes32(commitment)
        except (TypeError, ValueError) as exc:
            raise InvalidCommitment(str(exc)) from exc
        if not constant_time_compare(self._leaves[leaf_index], value):
            raise CommitmentMismatch(f"Commitment mismatch at leaf {leaf_index}")

        try:
            siblings = [to_bytes32(s) for s in proof]
        except (TypeError, ValueError):
            logger.debug("Malformed sibling in proof for leaf %d", leaf_index)
            return False
        computed = compute_root(value, leaf_index, siblings)
        return self.is_known_root(computed)

    @staticmethod
    def _check_index(leaf_index: int, count: int) -> None:
        if not isinstance(leaf_index, int) or isinstance(leaf_index, bool):
            raise InvalidIndex("Leaf index must be an integer")
        if leaf_index < 0 or leaf_index >= count:
            raise InvalidIndex(f"Invalid leaf index: {leaf_index}")

    # ------------------------------------------------------------------
    # Persistence
    # ------------------------------------------------------------------

    def to_json(self) -> str:
        """Serialize the published state.

        The inserter capability is never included.
        """
        with self._lock:
            return json.dumps({
                'depth': self._depth,
                'leaf_count': self._leaf_count,
                'root': self._root.hex(),
                'leaves': [leaf.hex() for leaf in self._leaves[:self._leaf_count]]
            }, sort_keys=True, indent=2)

    @classmethod
    def from_json(
        cls,
        data: str,
        capability: InserterCapability
    ) -> 'CommitmentAccumulator':
        """Rebuild an accumulator by replaying its stored leaves.

        Raises:
            ValueError: If the payload is malformed (bad JSON, missing keys,
                empty or duplicate leaves) or the replayed state disagrees
                with the stored root or leaf count
        """
        try:
            payload = json.loads(data)
            accumulator = cls(capability, depth=payload['depth'])
            for leaf in payload['leaves']:
                accumulator.insert(leaf, capability)
            stored_count = payload['leaf_count']
            stored_root = to_bytes32(payload['root'])
        except (KeyError, TypeError, RegistryError) as exc:
            raise ValueError(f"Malformed accumulator payload: {exc}") from exc

        if accumulator.leaf_count != stored_count:
            raise ValueError("Stored leaf count does not match stored leaves")
        if not constant_time_compare(accumulator.root, stored_root):
            raise ValueError("Stored root does not match replayed leaves")
        return accumulator

