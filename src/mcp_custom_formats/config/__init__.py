"""Instance inventory and environment settings."""
from .inventory import InstanceInventory
from .settings import (
    get_home_dir,
    get_instances_path,
    get_current_user,
    get_max_parallel,
)

__all__ = [
    "InstanceInventory",
    "get_home_dir",
    "get_instances_path",
    "get_current_user",
    "get_max_parallel",
]
