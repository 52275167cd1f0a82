"""Island terrain hydrology package."""

from .config import DEFAULT_RESOLUTION, DEFAULT_SEA_LEVEL, GeneratorConfig
from .world import World, generate_world

__all__ = ["DEFAULT_RESOLUTION", "DEFAULT_SEA_LEVEL", "GeneratorConfig", "World", "generate_world"]
