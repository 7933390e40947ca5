"""Core primitives shared by the games (session events and clocks).

Kept free of FastAPI concerns so it can be reused by API routes and tests.
"""
