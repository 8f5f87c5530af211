"""Infrastructure layer — SQLite persistence and hosted-backend clients.

This layer depends on stdlib and third-party libs (SQLAlchemy, httpx).
It may import domain protocols and records; it must never import from
services, commands, or output.
"""
