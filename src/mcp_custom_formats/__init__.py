"""formatsmith - versioned custom format deployment for Radarr/Sonarr instances."""

__version__ = "0.3.0"
