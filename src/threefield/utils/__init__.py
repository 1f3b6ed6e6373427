"""Utility helpers (run-time info, timing)."""
