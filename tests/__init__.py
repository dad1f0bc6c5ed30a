"""
Test suite for traceid-cluster.

This package contains all tests organized by component:
- test_algorithms/: Tests for distances, clustering, layout and sweeps
- test_services/: Tests for the service layer
"""
