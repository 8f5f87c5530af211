"""Service layer — reminder orchestration and URL caching returning ServiceResult.

Services may import from domain and config (section models only).
Infrastructure is injected through the domain protocols, never imported here.
They must never import from commands or output.
"""
