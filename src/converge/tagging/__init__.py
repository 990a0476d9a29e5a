"""Resource tagging."""

from .manager import TagManager, PROJECT_TAG, MANAGED_BY_TAG

__all__ = ['TagManager', 'PROJECT_TAG', 'MANAGED_BY_TAG']
