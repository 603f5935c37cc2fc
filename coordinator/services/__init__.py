"""
Coordinator services.

- resource_client: retrying store access
- capacity / placement / spec_builder: where and what to create
- convergence / finalizer: waiting on and releasing records
- volume_coordinator: provision, deprovision and expand
"""
