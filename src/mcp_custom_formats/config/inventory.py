"""Instance inventory loaded from YAML configuration.

```yaml
defaults:
  timeout: 30
  retries: 3

instances:
  radarr-main:
    owner: alice
    service: RADARR
    label: "Radarr 4K"
    base_url: http://radarr.lan:7878
    api_key_env: RADARR_API_KEY
```
"""
import logging
from pathlib import Path
from typing import Optional

import yaml

from ..schema import Instance, ServiceKind
from .settings import get_home_dir

logger = logging.getLogger(__name__)


class InstanceInventory:
    """Owner-scoped view of the configured arr instances."""

    def __init__(self, config_path: Optional[str] = None):
        self.config_path = config_path or self._find_config()
        self._config: dict = {}
        self._instances: dict[str, Instance] = {}
        self._load_config()

    def _find_config(self) -> str:
        """Find the instances.yaml config file."""
        search_paths = [
            Path.cwd() / "configs" / "instances.yaml",
            Path.cwd() / "instances.yaml",
            get_home_dir() / "instances.yaml",
            Path.home() / ".config" / "formatsmith" / "instances.yaml",
        ]

        for path in search_paths:
            if path.exists():
                return str(path)

        raise FileNotFoundError(
            "Could not find instances.yaml. Create one in ./configs/instances.yaml"
        )

    def _load_config(self) -> None:
        with open(self.config_path) as f:
            self._config = yaml.safe_load(f) or {}

        defaults = self._config.get("defaults", {})
        for instance_id, raw in (self._config.get("instances") or {}).items():
            merged = {**defaults, **(raw or {})}
            try:
                self._instances[instance_id] = self._build_instance(instance_id, merged)
            except (KeyError, ValueError) as e:
                logger.warning(f"Skipping instance '{instance_id}': invalid config ({e})")

        logger.debug(f"Loaded {len(self._instances)} instances from {self.config_path}")

    @staticmethod
    def _build_instance(instance_id: str, raw: dict) -> Instance:
        return Instance(
            id=instance_id,
            owner=str(raw["owner"]),
            service_kind=ServiceKind(str(raw["service"]).upper()),
            base_url=str(raw["base_url"]).rstrip("/"),
            label=raw.get("label", instance_id),
            api_key=raw.get("api_key"),
            api_key_env=raw.get("api_key_env", "ARR_API_KEY"),
            timeout=float(raw.get("timeout", 30)),
            retries=int(raw.get("retries", 3)),
        )

    def get_instance_ids(self, owner: Optional[str] = None) -> list[str]:
        """Get instance IDs, optionally only those owned by ``owner``."""
        return [
            i.id for i in self._instances.values()
            if owner is None or i.owner == owner
        ]

    def get_instance(self, instance_id: str, owner: str) -> Optional[Instance]:
        """Get an instance by id, scoped to its owner.

        Returns None both for unknown ids and for instances owned by
        someone else.
        """
        instance = self._instances.get(instance_id)
        if instance is None or instance.owner != owner:
            return None
        return instance

    def get_instances(self, owner: str) -> list[Instance]:
        return [i for i in self._instances.values() if i.owner == owner]
