"""Domain layer — coupon records, reminder rules, and collaborator protocols.

This layer depends only on stdlib and pydantic.
It must never import from services, infrastructure, commands, or config.
"""
