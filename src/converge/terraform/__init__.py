"""Terraform output for infrastructure-as-code rendering."""

from .writer import TerraformWriter

__all__ = ['TerraformWriter']
