from .base import Base
from .entity import Entity, EntityType

__all__ = [
    "Base",
    "Entity",
    "EntityType",
]
