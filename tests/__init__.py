"""
adtsync Test Suite
==================

Test organization mirrors the source code structure:
    tests/
    ├── test_core/           → adtsync.core (config, models)
    ├── test_integrations/   → adtsync.integrations.adt (session, payloads)
    ├── test_orchestration/  → transport resolver, synchronizer, orchestrator
    ├── test_infrastructure/ → file collection
    ├── test_integration/    → end-to-end upload scenarios
    └── conftest.py          → shared fixtures (MockAdtServer, configs)

Running Tests:
    pytest                          # Run all tests
    pytest tests/test_orchestration # Run only orchestration tests
    pytest -m integration           # Run only end-to-end tests
"""
