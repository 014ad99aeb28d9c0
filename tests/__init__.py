"""Test suite for lightcone.

This package contains:
- Unit tests for the lattice, interpolation, expansion and kernel tables
- End-to-end propagation tests against the direct pairwise evaluator
"""
