"""
Shared infrastructure: configuration-backed database access, logging,
exceptions and the generic repository.
"""
