"""Application layer: interfaces, DTOs, and services.

Depends on domain and protocol definitions. Infrastructure implements
the repository and cache protocols.
"""
