"""
API routes package
"""
from guardian.api.routes import carriers, claims

__all__ = [
    "carriers",
    "claims",
]
