"""Memory-card game engine.

Kept free of FastAPI concerns so the engine can be driven by API routes, scripts, and tests.
"""
