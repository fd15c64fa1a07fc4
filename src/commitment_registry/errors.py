"""
commitment_registry/errors.py
Error taxonomy for accumulator operations.

Every failure is raised before any state is touched, so a caller that
catches one of these can resubmit corrected input against unchanged state.
"""


class RegistryError(Exception):
    """Base exception for all registry failures."""

    code = "REGISTRY_ERROR"

    def __init__(self, message: str = ""):
        super().__init__(message or self.code)
        self.message = message or self.code

    def __str__(self) -> str:
        return f"[{self.code}] {self.message}"


class PermissionDenied(RegistryError):
    """Mutating call made without the inserter capability."""

    code = "PERMISSION_DENIED"


class InvalidCommitment(RegistryError):
    """Commitment equals the reserved empty value or is malformed."""

    code = "INVALID_COMMITMENT"


class DuplicateCommitment(RegistryError):
    code = "DUPLICATE_COMMITMENT"


class TreeFull(RegistryError):
    code = "TREE_FULL"


class InvalidIndex(RegistryError):
    """Leaf index outside [0, leaf_count)."""

    code = "INVALID_INDEX"


class InvalidProofLength(RegistryError):
    code = "INVALID_PROOF_LENGTH"


class CommitmentMismatch(RegistryError):
    """Supplied commitment differs from the leaf stored at the claimed index."""

    code = "COMMITMENT_MISMATCH"
