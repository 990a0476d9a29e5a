"""Declaration file parsing and validation."""

from .models import (
    DeclarationConfig,
    InternetGatewayConfig,
    ProjectConfig,
    ResourceConfig,
    VPCConfig,
)
from .parser import Config, ConfigValidationError

__all__ = [
    'Config',
    'ConfigValidationError',
    'DeclarationConfig',
    'InternetGatewayConfig',
    'ProjectConfig',
    'ResourceConfig',
    'VPCConfig',
]
