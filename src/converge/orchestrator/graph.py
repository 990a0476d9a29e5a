"""Declaration graph of desired resources, ordered by their references."""

from collections import defaultdict, deque
from dataclasses import dataclass
from typing import Dict, Iterator, List, Optional, Set

from converge.resources.base import ResourceDescriptor
from converge.utils.errors import DependencyError, ErrorContext, UnresolvedReferenceError


@dataclass
class GraphNode:
    """Node in the declaration graph."""

    key: str
    resource: ResourceDescriptor
    dependencies: Set[str]  # Keys this node references


class DeclarationGraph:
    """Directed acyclic graph of desired resources.

    Each descriptor appears exactly once, so no two reconciliations in a run
    target the same object.
    """

    def __init__(self):
        """Initialize empty graph."""
        self.nodes: Dict[str, GraphNode] = {}
        self._dependents: Dict[str, Set[str]] = defaultdict(set)

    def add(self, resource: ResourceDescriptor) -> ResourceDescriptor:
        """Add a resource to the graph.

        Args:
            resource: Desired descriptor

        Returns:
            The resource, for chaining declarations

        Raises:
            DependencyError: If a different descriptor with the same key exists
        """
        key = resource.key
        existing = self.nodes.get(key)
        if existing is not None:
            if existing.resource is resource:
                return resource
            raise DependencyError(
                f"Resource '{key}' is declared more than once",
                context=ErrorContext(resource_id=key, resource_type=resource.resource_type)
            )

        dependencies = {ref.key for ref in resource.references()}
        self.nodes[key] = GraphNode(key=key, resource=resource, dependencies=dependencies)
        for dep_key in dependencies:
            self._dependents[dep_key].add(key)
        return resource

    def get(self, key: str) -> Optional[ResourceDescriptor]:
        node = self.nodes.get(key)
        return node.resource if node else None

    def __contains__(self, key: str) -> bool:
        return key in self.nodes

    def __iter__(self) -> Iterator[ResourceDescriptor]:
        return (node.resource for node in self.nodes.values())

    def __len__(self) -> int:
        return len(self.nodes)

    def dependencies_of(self, key: str) -> Set[str]:
        """Get direct dependencies of a resource."""
        if key not in self.nodes:
            return set()
        return self.nodes[key].dependencies.copy()

    def dependents_of(self, key: str) -> Set[str]:
        """Get direct dependents of a resource."""
        return self._dependents[key].copy()

    def all_dependents(self, key: str) -> Set[str]:
        """Get all transitive dependents of a resource.

        Args:
            key: Resource key

        Returns:
            Keys of every resource that directly or indirectly references it
        """
        visited = set()
        queue = deque([key])

        while queue:
            current = queue.popleft()
            if current in visited:
                continue
            visited.add(current)
            for dependent in self._dependents[current]:
                if dependent not in visited:
                    queue.append(dependent)

        visited.discard(key)
        return visited

    def detect_circular_dependencies(self) -> Optional[List[str]]:
        """Detect circular references in the graph.

        Returns:
            Keys forming a cycle, or None if no cycle exists
        """
        # White (0): unvisited, Gray (1): visiting, Black (2): visited
        color = {key: 0 for key in self.nodes}
        parent: Dict[str, str] = {}

        def dfs(key: str) -> Optional[List[str]]:
            color[key] = 1

            for dependent in self._dependents[key]:
                if dependent not in color:
                    continue
                if color[dependent] == 1:
                    cycle = [dependent]
                    current = key
                    while current != dependent:
                        cycle.append(current)
                        current = parent.get(current)
                        if current is None:
                            break
                    cycle.append(dependent)
                    return list(reversed(cycle))

                if color[dependent] == 0:
                    parent[dependent] = key
                    cycle = dfs(dependent)
                    if cycle:
                        return cycle

            color[key] = 2
            return None

        for key in self.nodes:
            if color[key] == 0:
                cycle = dfs(key)
                if cycle:
                    return cycle

        return None

    def validate(self) -> None:
        """Validate the graph before any reconciliation begins.

        Checks for cycles and unknown references, runs each resource's own
        declaration checks, and makes sure every reference to a shared
        resource will be able to resolve to a literal ID.

        Raises:
            DependencyError: On cycles or references to undeclared resources
            ConfigurationError: If a declaration is self-contradictory
            UnresolvedReferenceError: If a shared resource is referenced but can never be resolved
        """
        cycle = self.detect_circular_dependencies()
        if cycle:
            raise DependencyError(
                f"Circular dependency detected: {' -> '.join(cycle)}",
                context=ErrorContext(resource_id=cycle[0])
            )

        for key, node in self.nodes.items():
            for dep_key in node.dependencies:
                if dep_key not in self.nodes:
                    raise DependencyError(
                        f"Resource '{key}' references '{dep_key}' which is not declared",
                        context=ErrorContext(resource_id=key)
                    )

        for node in self.nodes.values():
            node.resource.validate()

        for node in self.nodes.values():
            for ref in node.resource.references():
                if ref.shared and not ref.is_discoverable():
                    raise UnresolvedReferenceError(
                        f"Resource '{node.key}' references shared resource '{ref.key}' "
                        f"whose ID cannot be determined",
                        context=ErrorContext(resource_id=node.key, operation='validate')
                    )

    def waves(self) -> List[List[str]]:
        """Group resources into waves that can be reconciled in parallel.

        Resources in the same wave do not reference each other.

        Returns:
            List of waves, each a sorted list of resource keys

        Raises:
            DependencyError: If the graph contains cycles
        """
        in_degree = {key: len(node.dependencies) for key, node in self.nodes.items()}
        current_wave = sorted(key for key, degree in in_degree.items() if degree == 0)
        waves = []

        while current_wave:
            waves.append(current_wave)
            next_wave = []
            for key in current_wave:
                for dependent in self._dependents[key]:
                    in_degree[dependent] -= 1
                    if in_degree[dependent] == 0:
                        next_wave.append(dependent)
            current_wave = sorted(next_wave)

        if sum(len(wave) for wave in waves) != len(self.nodes):
            raise DependencyError("Cannot order resources: graph contains cycles")

        return waves
