"""Pydantic models for the declaration file schema."""

import ipaddress
import re
from typing import Dict, List, Optional

from pydantic import BaseModel, Field, field_validator, model_validator

from converge.cloud.ec2 import NAME_TAG
from converge.resources.base import Lifecycle
from converge.tagging.manager import TagManager

MAX_TAGS = 50

REGION_PATTERN = re.compile(r"^[a-z]{2}(-gov)?-[a-z]+-\d$")


def validate_tag_map(v: Dict[str, str]) -> Dict[str, str]:
    """Validate tag keys and values against EC2 limits."""
    for key, value in v.items():
        if not key or not isinstance(key, str):
            raise ValueError(f"Tag key must be a non-empty string: {key}")
        if key.startswith("aws:"):
            raise ValueError(f"Tag key cannot start with 'aws:' (reserved): {key}")
        if not isinstance(value, str):
            raise ValueError(f"Tag value must be a string for key '{key}': {value}")
        if len(key) > 128:
            raise ValueError(f"Tag key exceeds 128 characters: {key}")
        if len(value) > 256:
            raise ValueError(f"Tag value exceeds 256 characters for key '{key}'")
    if len(v) > MAX_TAGS:
        raise ValueError(f"Too many tags: {len(v)} (AWS limit is {MAX_TAGS} per resource)")
    return v


class ProjectConfig(BaseModel):
    """Project-level configuration."""

    name: str = Field(..., min_length=1, max_length=64, pattern="^[a-z0-9-]+$")
    region: str = Field(..., min_length=1)
    tags: Dict[str, str] = Field(default_factory=dict)

    @field_validator("region")
    @classmethod
    def validate_region(cls, v: str) -> str:
        """Validate AWS region format."""
        if not REGION_PATTERN.match(v):
            raise ValueError(f"Invalid AWS region: {v}")
        return v

    @field_validator("tags")
    @classmethod
    def validate_tags(cls, v: Dict[str, str]) -> Dict[str, str]:
        return validate_tag_map(v)


class ResourceConfig(BaseModel):
    """Fields common to every declared resource."""

    name: str = Field(..., min_length=1, max_length=255)
    id: Optional[str] = Field(None, description="Provider ID of an existing object")
    shared: bool = Field(False, description="Externally owned; never created or modified")
    lifecycle: Lifecycle = Lifecycle.SYNC
    tags: Dict[str, str] = Field(default_factory=dict)

    @field_validator("tags")
    @classmethod
    def validate_tags(cls, v: Dict[str, str]) -> Dict[str, str]:
        return validate_tag_map(v)


class VPCConfig(ResourceConfig):
    """VPC declaration."""

    cidr_block: Optional[str] = Field(None, description="VPC CIDR block (e.g., 10.0.0.0/16)")
    enable_dns_support: Optional[bool] = None
    enable_dns_hostnames: Optional[bool] = None

    @field_validator("cidr_block")
    @classmethod
    def validate_cidr(cls, v: Optional[str]) -> Optional[str]:
        if v is None:
            return v
        network = ipaddress.ip_network(v, strict=True)
        if network.version != 4 or not 16 <= network.prefixlen <= 28:
            raise ValueError(f"VPC CIDR must be an IPv4 block between /16 and /28: {v}")
        return v

    @model_validator(mode="after")
    def validate_vpc(self):
        """Shared VPCs are found by ID; managed VPCs need a CIDR."""
        if self.shared and not self.id:
            raise ValueError("id is required when the VPC is shared")
        if not self.shared and not self.cidr_block:
            raise ValueError("cidr_block is required unless the VPC is shared")
        return self


class InternetGatewayConfig(ResourceConfig):
    """Internet gateway declaration."""

    vpc: str = Field(..., min_length=1, description="Name of the declared VPC to attach to")


class DeclarationConfig(BaseModel):
    """Complete declaration file."""

    project: ProjectConfig
    vpcs: List[VPCConfig] = Field(default_factory=list)
    internet_gateways: List[InternetGatewayConfig] = Field(default_factory=list)

    @model_validator(mode="after")
    def validate_references(self):
        """Names are unique per kind, merged tags fit the limit and gateway VPC references resolve."""
        for kind, items in (("vpcs", self.vpcs), ("internet_gateways", self.internet_gateways)):
            seen = set()
            for item in items:
                if item.name in seen:
                    raise ValueError(f"Duplicate name in {kind}: {item.name}")
                seen.add(item.name)

        # System, project and Name tags are added to every resource
        tag_manager = TagManager(self.project)
        for item in [*self.vpcs, *self.internet_gateways]:
            tags = tag_manager.generate_tags(item.tags)
            tags[NAME_TAG] = item.name
            if len(tags) > MAX_TAGS:
                raise ValueError(
                    f"'{item.name}' would carry {len(tags)} tags including system and project tags "
                    f"(AWS limit is {MAX_TAGS} per resource)"
                )

        vpc_names = {vpc.name for vpc in self.vpcs}
        for igw in self.internet_gateways:
            if igw.vpc not in vpc_names:
                raise ValueError(
                    f"internet gateway '{igw.name}' references undeclared VPC '{igw.vpc}'"
                )
        return self
