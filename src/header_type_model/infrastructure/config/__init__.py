"""Infrastructure configuration module."""

from .abi_config import DEFAULT_CONTAINER_LAYOUTS, AbiConfig
from .application_config import Config

__all__ = ["AbiConfig", "Config", "DEFAULT_CONTAINER_LAYOUTS"]
