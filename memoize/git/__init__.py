"""Version-control integrations."""

from .metadata import GitMetadataProvider

__all__ = ["GitMetadataProvider"]
