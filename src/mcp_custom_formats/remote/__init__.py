"""Remote clients for arr instances."""
from ..schema import Instance, ServiceKind
from .base import RemoteInstanceClient
from .arr import ArrClient

__all__ = [
    "RemoteInstanceClient",
    "ArrClient",
    "CLIENT_TYPES",
    "create_client",
]

# Client registry per service kind
CLIENT_TYPES = {
    ServiceKind.RADARR: ArrClient,
    ServiceKind.SONARR: ArrClient,
}


def create_client(instance: Instance) -> RemoteInstanceClient:
    """Factory function to create a client for an instance."""
    if instance.service_kind not in CLIENT_TYPES:
        raise ValueError(f"Unknown service kind: {instance.service_kind}")

    client_class = CLIENT_TYPES[instance.service_kind]
    return client_class(instance)
