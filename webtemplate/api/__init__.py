"""API Layer — route registry, request pipeline, auth dependency and error handlers.

Invariants:
    - Routes reach the app only through the route registry
    - All endpoints return structured JSON responses
"""
