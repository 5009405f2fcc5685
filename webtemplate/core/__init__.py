"""Core Layer — error taxonomy, token codec and clock. No IO, no DB.

Invariants:
    - No module in core/ imports from api/, services/, infrastructure/, or db/
"""
