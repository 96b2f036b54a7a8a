"""Core computational modules for Consensus-Refinery.

This package contains the main engines:
- functions: ClusterFunction capability interface and built-in adapters
- reduction: Data transformation and dimensionality reduction
- clustering: Single-clustering orchestration (subsampling, sequential search)
- consensus: Consensus clustering across many label vectors
- validation: Configuration errors, invariant violations, and checks
"""
