"""
Volume Provisioning Coordinator

Places, creates and removes logical volume records in the declarative store
and waits for the external LVM reconciler to converge on them.
Responsibilities:
- Volume group capacity aggregation and node placement
- Logical volume record lifecycle (create, expand, finalizer release, delete)
- Convergence polling with cancellation
"""
