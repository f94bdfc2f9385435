"""
Agentics Test Suite
===================

Test organization mirrors the source code structure:
    tests/
    ├── test_core/          → agentics.core (config, models, events, errors)
    ├── test_agents/        → agentics.agents (base, planner, writers)
    ├── test_orchestration/ → agentics.orchestration (budget, bus, orchestrator, maintenance)
    ├── test_infrastructure/→ agentics.infrastructure (both blackboard backends, factory)
    ├── test_api/           → agentics.api (routes, SSE bridge)
    ├── test_integration/   → End-to-end HTTP scenarios
    └── conftest.py         → Shared pytest fixtures

Running Tests:
    pytest                              # Run all tests
    pytest tests/test_infrastructure/   # Blackboard tests (memory + SQLite)
"""
