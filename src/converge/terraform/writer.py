"""Terraform JSON emitter.

Collects resource blocks emitted by the renderer and serialises them as a
``*.tf.json`` document. Deferred property references become Terraform
interpolations here, so Terraform works out apply order from them.
"""

import json
import threading
from pathlib import Path
from typing import Any, Dict, Optional

from converge.references import to_terraform_value
from converge.utils.errors import ConfigurationError, ErrorContext
from converge.utils.logging import get_logger

logger = get_logger(__name__)


class TerraformWriter:
    """Accumulates ``resource`` blocks for a single Terraform JSON file."""

    def __init__(self, region: Optional[str] = None):
        """Initialize writer.

        Args:
            region: If set, an ``aws`` provider block for this region is included
        """
        self.region = region
        self._resources: Dict[str, Dict[str, Dict[str, Any]]] = {}
        self._lock = threading.Lock()

    def emit(self, resource_type: str, name: str, fields: Dict[str, Any]) -> None:
        """Record one resource block.

        Args:
            resource_type: Terraform resource type, e.g. ``aws_internet_gateway``
            name: Stable resource name used as the block key
            fields: Block body; values may be scalars, string maps or Literals

        Raises:
            ConfigurationError: If a block with the same type and name was already emitted
        """
        body = {
            key: to_terraform_value(value)
            for key, value in fields.items()
            if value is not None
        }

        with self._lock:
            blocks = self._resources.setdefault(resource_type, {})
            if name in blocks:
                raise ConfigurationError(
                    f"Duplicate Terraform resource {resource_type}.{name}",
                    context=ErrorContext(resource_id=name, resource_type=resource_type)
                )
            blocks[name] = body

        logger.debug(f"Emitted Terraform resource {resource_type}.{name}")

    def has_resource(self, resource_type: str, name: str) -> bool:
        with self._lock:
            return name in self._resources.get(resource_type, {})

    def get_resource(self, resource_type: str, name: str) -> Optional[Dict[str, Any]]:
        with self._lock:
            return self._resources.get(resource_type, {}).get(name)

    def to_dict(self) -> Dict[str, Any]:
        """Build the Terraform JSON document."""
        document: Dict[str, Any] = {}
        if self.region:
            document['provider'] = {'aws': {'region': self.region}}
        with self._lock:
            if self._resources:
                document['resource'] = {
                    resource_type: dict(blocks)
                    for resource_type, blocks in self._resources.items()
                }
        return document

    def render(self) -> str:
        """Serialise the document with stable key ordering."""
        return json.dumps(self.to_dict(), indent=2, sort_keys=True) + "\n"

    def write(self, path: str) -> Path:
        """Write the rendered document to ``path``.

        Args:
            path: Output file, conventionally ending in ``.tf.json``

        Returns:
            Path that was written
        """
        output = Path(path)
        output.parent.mkdir(parents=True, exist_ok=True)
        output.write_text(self.render(), encoding="utf-8")
        logger.info(f"Wrote Terraform configuration to {output}")
        return output
