"""Streamlit admin/booking UI helpers: HTTP client and session-scoped UI state."""
