"""YAML declaration parser."""

from pathlib import Path
from typing import Dict, List, Optional

import yaml
from pydantic import ValidationError

from converge.config.models import DeclarationConfig, ProjectConfig
from converge.orchestrator.graph import DeclarationGraph
from converge.resources import VPC, InternetGateway
from converge.tagging.manager import TagManager
from converge.utils.logging import get_logger

logger = get_logger(__name__)


class ConfigValidationError(Exception):
    """Exception raised when configuration validation fails."""

    def __init__(self, message: str, errors: Optional[List[Dict]] = None):
        self.message = message
        self.errors = errors or []
        super().__init__(self.message)

    def __str__(self) -> str:
        """Format validation errors for display."""
        if not self.errors:
            return self.message

        error_lines = [self.message, ""]
        for error in self.errors:
            location = " -> ".join(str(loc) for loc in error.get("loc", []))
            msg = error.get("msg", "Unknown error")
            error_lines.append(f"  - {location}: {msg}")

        return "\n".join(error_lines)


class Config:
    """Loads a declaration file and turns it into a graph of desired resources."""

    def __init__(self, config_path: str):
        """Initialize configuration manager.

        Args:
            config_path: Path to the converge.yaml declaration file
        """
        self.config_path = Path(config_path)
        self.data: Dict = {}
        self.declaration: Optional[DeclarationConfig] = None

    @property
    def project(self) -> ProjectConfig:
        if self.declaration is None:
            raise RuntimeError("configuration has not been loaded")
        return self.declaration.project

    def load(self) -> "Config":
        """Load and validate configuration from YAML file.

        Returns:
            Self for method chaining

        Raises:
            ConfigValidationError: If configuration is invalid
            FileNotFoundError: If configuration file doesn't exist
        """
        if not self.config_path.exists():
            raise FileNotFoundError(f"Configuration file not found: {self.config_path}")

        try:
            with open(self.config_path, "r") as f:
                data = yaml.safe_load(f) or {}
        except yaml.YAMLError as e:
            raise ConfigValidationError(f"Failed to parse YAML: {e}")

        return self.load_data(data)

    def load_data(self, data: Dict) -> "Config":
        """Validate an already-parsed declaration.

        Raises:
            ConfigValidationError: If the declaration does not match the schema
        """
        if not isinstance(data, dict):
            raise ConfigValidationError("Declaration must be a mapping at the top level")

        self.data = data
        try:
            self.declaration = DeclarationConfig.model_validate(data)
        except ValidationError as e:
            errors = [{"loc": list(err["loc"]), "msg": err["msg"]} for err in e.errors()]
            raise ConfigValidationError(
                f"Configuration validation failed with {len(errors)} error(s)",
                errors,
            )

        logger.debug(
            f"Loaded declaration for project {self.project.name}: "
            f"{len(self.declaration.vpcs)} VPCs, "
            f"{len(self.declaration.internet_gateways)} internet gateways"
        )
        return self

    def tag_manager(self) -> TagManager:
        return TagManager(self.project)

    def build_graph(self) -> DeclarationGraph:
        """Build the desired-state graph.

        Returns:
            DeclarationGraph with one descriptor per declared resource
        """
        declaration = self.declaration
        if declaration is None:
            raise RuntimeError("configuration has not been loaded")

        tag_manager = self.tag_manager()
        graph = DeclarationGraph()
        vpcs: Dict[str, VPC] = {}

        for vpc_config in declaration.vpcs:
            vpc = VPC(
                name=vpc_config.name,
                id=vpc_config.id,
                shared=vpc_config.shared,
                lifecycle=vpc_config.lifecycle,
                tags=tag_manager.generate_tags(vpc_config.tags),
                cidr_block=vpc_config.cidr_block,
                enable_dns_support=vpc_config.enable_dns_support,
                enable_dns_hostnames=vpc_config.enable_dns_hostnames,
            )
            vpcs[vpc_config.name] = graph.add(vpc)

        for igw_config in declaration.internet_gateways:
            graph.add(InternetGateway(
                name=igw_config.name,
                id=igw_config.id,
                shared=igw_config.shared,
                lifecycle=igw_config.lifecycle,
                tags=tag_manager.generate_tags(igw_config.tags),
                vpc=vpcs[igw_config.vpc],
            ))

        return graph
