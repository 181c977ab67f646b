"""Test package for restock-router.

This package contains:
- Unit tests (test_schedule.py, test_eta_client.py, test_places.py,
  test_greedy.py, test_estimates.py, test_preview.py)
- Session orchestration tests (test_planner.py)
- Adapter and configuration tests (test_providers.py, test_config_loader.py)
- HTTP action tests (test_actions.py)
- Test configuration and fakes (conftest.py)
"""
