"""Test suite for Consensus-Refinery.

Test organization:
- fixtures/: Synthetic data generators and collaborator fakes
- unit/: Unit tests for individual modules

Run tests with:
    pytest tests/
    pytest tests/unit/test_consensus.py -v
"""
