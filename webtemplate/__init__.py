"""web-template — FastAPI service skeleton.

Invariants:
    - Package root contains no executable code (import side-effects prohibited)
"""
