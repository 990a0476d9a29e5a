"""Tag generation for declared resources."""

from typing import TYPE_CHECKING, Dict, Optional

from converge.utils.logging import get_logger

if TYPE_CHECKING:
    from converge.config.models import ProjectConfig

logger = get_logger(__name__)

PROJECT_TAG = "converge:project"
MANAGED_BY_TAG = "converge:managed-by"
MANAGED_BY = "converge"


class TagManager:
    """Builds the tag set for each declared resource.

    System tags must be stable between runs: a tag that changes on every run
    (a timestamp, say) would show up as drift forever.
    """

    def __init__(self, project_config: "ProjectConfig"):
        """Initialize tag manager.

        Args:
            project_config: Project configuration containing project-level tags
        """
        self.project_config = project_config

    def system_tags(self) -> Dict[str, str]:
        """Tags the engine puts on every resource it manages."""
        return {
            PROJECT_TAG: self.project_config.name,
            MANAGED_BY_TAG: MANAGED_BY,
        }

    def owner_filter_tags(self) -> Dict[str, str]:
        """Tags a name-based lookup must also match, so other projects' objects are ignored."""
        return {PROJECT_TAG: self.project_config.name}

    def generate_tags(self, resource_tags: Optional[Dict[str, str]] = None) -> Dict[str, str]:
        """Generate complete tag set for a resource with inheritance.

        Tag inheritance order (later overrides earlier):
        1. System tags (converge:*)
        2. Project-level tags
        3. Resource-specific tags

        Args:
            resource_tags: Optional resource-specific tags

        Returns:
            Complete dictionary of tags to apply to the resource
        """
        tags = self.system_tags()
        tags.update(self.project_config.tags)
        if resource_tags:
            tags.update(resource_tags)

        logger.debug(f"Generated {len(tags)} tags for project={self.project_config.name}")
        return tags
