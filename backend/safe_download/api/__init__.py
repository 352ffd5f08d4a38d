# API routes package

from . import containers, policy

__all__ = [
    "containers",
    "policy",
]
