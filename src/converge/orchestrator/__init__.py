"""Declaration graph and reconciliation executor."""

from converge.orchestrator.graph import DeclarationGraph, GraphNode
from converge.orchestrator.executor import (
    ExecutionStatus,
    ProgressCallback,
    ReconcileExecutor,
    ResourceResult,
    RunResult,
    WaveResult,
)

__all__ = [
    'DeclarationGraph',
    'GraphNode',
    'ExecutionStatus',
    'ProgressCallback',
    'ReconcileExecutor',
    'ResourceResult',
    'RunResult',
    'WaveResult',
]
