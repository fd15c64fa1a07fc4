"""
examples/complete_workflow.py
End-to-end example: Commit → Register → Prove → Verify
"""
import json
import sys
import os

# Add src to path for development
sys.path.insert(0, os.path.join(os.path.dirname(__file__), '..', 'src'))

from commitment_registry import (
    CommitmentAccumulator,
    InserterCapability,
    CommitmentAdded,
    generate_commitment,
    generate_secret,
    create_proof_bundle,
    verify_offline,
)

# ============================================================
# STEP 1: AUTHORITY - Set up the registry
# ============================================================

print("=" * 60)
print("COMMITMENT REGISTRY: Private Domain Ownership")
print("=" * 60)
print()

authority = InserterCapability.generate()
registry = CommitmentAccumulator(authority)


def print_insertion(event):
    if isinstance(event, CommitmentAdded):
        print(f"  [event] leaf {event.leaf_index} -> root {event.root.hex()[:16]}...")


registry.subscribe(print_insertion)

print(f"✓ Tree depth: {registry.depth} (capacity {registry.capacity})")
print(f"✓ Empty root: {registry.root.hex()}")

# ============================================================
# STEP 2: OWNERS - Bind secrets to domain identifiers
# ============================================================

# Domain identifiers come from the external token ledger
domains = {1: "alice.example", 2: "bob.example", 3: "carol.example"}
secrets_by_domain = {domain_id: generate_secret() for domain_id in domains}
commitments = {
    domain_id: generate_commitment(domain_id, secret)
    for domain_id, secret in secrets_by_domain.items()
}

# ============================================================
# STEP 3: AUTHORITY - Register commitments
# ============================================================

print()
print("-" * 60)
print("REGISTRATION")
print("-" * 60)

leaf_of = {}
for domain_id, commitment in commitments.items():
    leaf_of[domain_id] = registry.insert(commitment, authority)

published_root = registry.root
print(f"\n✓ {registry.leaf_count} commitments registered")
print(f"✓ Published root: {published_root.hex()}")

# ============================================================
# STEP 4: OWNER - Fetch a proof for their leaf
# ============================================================

bundle = create_proof_bundle(registry, leaf_of[2])
proof_json = json.dumps(bundle.to_dict())

print(f"\n✓ Proof generated for leaf {bundle.leaf_index}")
print(f"  - Siblings: {len(bundle.siblings)}")
print(f"  - Path indices: {bundle.path_indices}")

# ============================================================
# STEP 5: VERIFIER - Check inclusion offline
# ============================================================

print()
print("-" * 60)
print("OFFLINE VERIFICATION")
print("-" * 60)

result = verify_offline(proof_json, published_root)
print(f"\n✓ Verification result:")
print(f"  - Valid: {result.is_valid}")
print(f"  - Leaf: {result.leaf_index}")

# On-registry verification also accepts the bundle after further appends
registry.insert(generate_commitment(4, generate_secret()), authority)
still_valid = registry.verify(
    bytes.fromhex(bundle.commitment),
    bundle.leaf_index,
    [bytes.fromhex(s) for s in bundle.siblings]
)
print(f"\n✓ Proof still accepted after new registration: {still_valid}")

print()
print("=" * 60)
print("COMPLETE WORKFLOW SUCCESSFUL")
print("=" * 60)
