"""
MedTrack Test Suite
===================

This package contains all tests for the MedTrack reminder engine.

Test Structure:
- test_tools/: meal windows, slot compilation, document store, notifiers
- test_actions/: reminder lifecycle, inventory ledger, activity log
- test_services/: medicine and settings services, background ticker
- test_api/: API endpoint tests for FastAPI routes
- conftest.py: Shared pytest fixtures

Running Tests:
    # Run all tests
    pytest

    # Run specific test module
    pytest tests/test_actions/

    # Run only marked tests
    pytest -m "unit"
    pytest -m "api"
"""
