"""Core infrastructure components."""

from dispute_service.core.state import AppState, DisputeCounts, get_app_state, init_app_state

__all__ = ["AppState", "DisputeCounts", "get_app_state", "init_app_state"]
