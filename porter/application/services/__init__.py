"""Application services: role keys, registry, tenant policy, cache coordination, assignment engine."""
