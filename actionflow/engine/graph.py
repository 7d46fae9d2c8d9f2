"""
Graph Definition for Actionflow.

The Graph holds the workflow's nodes and edges and decides which
connections are allowed. Edge insertion order is kept: it is the order
in which a node's successors are visited.
"""

from typing import Any, Dict, List, Optional, Set, Tuple, Union
from dataclasses import dataclass, field
import logging
import uuid

from actionflow.engine.node import GraphError, Node, NodeConfig, NodeKind


logger = logging.getLogger(__name__)


# Branch labels recognized on edges leaving a conditional node
BRANCH_TRUE = "true"
BRANCH_FALSE = "false"

# (source kind, target kind) pairs that may never be connected.
INCOMPATIBLE_CONNECTIONS: Set[Tuple[NodeKind, NodeKind]] = {
    (NodeKind.LOG, NodeKind.AI_GENERATE),
}


@dataclass
class Edge:
    """An edge connecting two nodes."""
    source: str
    target: str
    branch_label: Optional[str] = None

    def matches(self, source: str, target: str, branch_label: Optional[str] = None) -> bool:
        return (
            self.source == source
            and self.target == target
            and self.branch_label == branch_label
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "source": self.source,
            "target": self.target,
            "branchLabel": self.branch_label,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Edge":
        return cls(
            source=data["source"],
            target=data["target"],
            branch_label=data.get("branchLabel", data.get("branch_label")),
        )


@dataclass
class Graph:
    """
    A workflow graph consisting of nodes and edges.

    Attributes:
        graph_id: Unique identifier for this graph
        name: Human-readable name
        nodes: Dict of node_id -> Node, in insertion order
        edges: List of edges, in insertion order
        description: Human-readable description
        metadata: Additional graph metadata
    """

    graph_id: str = field(default_factory=lambda: str(uuid.uuid4()))
    name: str = "Unnamed Workflow"
    nodes: Dict[str, Node] = field(default_factory=dict)
    edges: List[Edge] = field(default_factory=list)
    description: str = ""
    metadata: Dict[str, Any] = field(default_factory=dict)

    # ------------------------------------------------------------
    # Nodes
    # ------------------------------------------------------------

    def add_node(
        self,
        node_or_id: Union[Node, str],
        kind: Optional[Union[NodeKind, str]] = None,
        label: str = "",
        config: Optional[Union[Dict[str, Any], NodeConfig]] = None,
    ) -> "Graph":
        """
        Add a node to the graph.

        Accepts either a ready Node or its id, kind, label and config.

        Returns:
            Self for chaining
        """
        if isinstance(node_or_id, Node):
            node = node_or_id
        else:
            if kind is None:
                raise GraphError(f"Node '{node_or_id}' needs a kind")
            node = Node(id=node_or_id, kind=kind, label=label, config=config)

        if node.id in self.nodes:
            raise GraphError(f"Node '{node.id}' already exists in the graph")

        self.nodes[node.id] = node
        return self

    def get_node(self, node_id: str) -> Node:
        node = self.nodes.get(node_id)
        if node is None:
            raise GraphError(f"Node '{node_id}' not found in graph")
        return node

    def remove_node(self, node_id: str) -> "Graph":
        """Remove a node and every edge touching it."""
        self.get_node(node_id)
        del self.nodes[node_id]
        self.edges = [
            e for e in self.edges
            if e.source != node_id and e.target != node_id
        ]
        return self

    # ------------------------------------------------------------
    # Connections
    # ------------------------------------------------------------

    def check_connection(
        self,
        source: str,
        target: str,
        branch_label: Optional[str] = None
    ) -> Optional[str]:
        """
        Check whether a proposed edge is allowed.

        Returns:
            A user-facing rejection reason, or None if the edge is valid

        Raises:
            GraphError: If either endpoint does not exist
        """
        source_node = self.get_node(source)
        target_node = self.get_node(target)

        if source == target:
            return "A node cannot be connected to itself"
        if target_node.kind == NodeKind.TRIGGER:
            return "Trigger nodes cannot receive input"
        if (source_node.kind, target_node.kind) in INCOMPATIBLE_CONNECTIONS:
            return (
                f"A {source_node.kind.value} node cannot feed "
                f"a {target_node.kind.value} node"
            )
        if any(e.matches(source, target, branch_label) for e in self.edges):
            return "These nodes are already connected"
        return None

    def is_valid_connection(
        self,
        source: str,
        target: str,
        branch_label: Optional[str] = None
    ) -> bool:
        return self.check_connection(source, target, branch_label) is None

    def connect(
        self,
        source: str,
        target: str,
        branch_label: Optional[str] = None
    ) -> bool:
        """
        Add an edge if the connection is allowed.

        Declined connections are logged and reported by returning False;
        only a missing endpoint raises.
        """
        reason = self.check_connection(source, target, branch_label)
        if reason:
            logger.info(f"Connection {source} -> {target} declined: {reason}")
            return False
        self.edges.append(Edge(source, target, branch_label))
        return True

    def add_edge(
        self,
        source: str,
        target: str,
        branch_label: Optional[str] = None
    ) -> "Graph":
        """
        Add an edge from source to target.

        Returns:
            Self for chaining

        Raises:
            GraphError: If an endpoint is missing or the connection is declined
        """
        reason = self.check_connection(source, target, branch_label)
        if reason:
            raise GraphError(f"Cannot connect '{source}' to '{target}': {reason}")
        self.edges.append(Edge(source, target, branch_label))
        return self

    def remove_edge(
        self,
        source: str,
        target: str,
        branch_label: Optional[str] = None
    ) -> bool:
        for i, edge in enumerate(self.edges):
            if edge.matches(source, target, branch_label):
                del self.edges[i]
                return True
        return False

    # ------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------

    def outgoing(self, node_id: str) -> List[Edge]:
        """Edges leaving a node, in insertion order."""
        return [e for e in self.edges if e.source == node_id]

    def incoming(self, node_id: str) -> List[Edge]:
        """Edges entering a node, in insertion order."""
        return [e for e in self.edges if e.target == node_id]

    def triggers(self) -> List[Node]:
        return [n for n in self.nodes.values() if n.kind == NodeKind.TRIGGER]

    def unconnected_nodes(self) -> List[str]:
        """Non-trigger nodes that have no incoming edge and so never receive input."""
        targets = {e.target for e in self.edges}
        return [
            node_id for node_id, node in self.nodes.items()
            if node.kind != NodeKind.TRIGGER and node_id not in targets
        ]

    def validate(self) -> List[str]:
        """
        Validate the graph structure.

        Returns:
            List of validation errors (empty if valid)
        """
        errors = []

        if not self.nodes:
            errors.append("Graph must have at least one node")
            return errors

        if not self.triggers():
            errors.append("Graph must have a trigger node")

        for edge in self.edges:
            if edge.source not in self.nodes or edge.target not in self.nodes:
                errors.append(
                    f"Edge {edge.source} -> {edge.target} references a missing node"
                )

        unconnected = self.unconnected_nodes()
        if unconnected:
            errors.append(f"Nodes without input: {unconnected}")

        return errors

    # ------------------------------------------------------------
    # Serialization
    # ------------------------------------------------------------

    def to_dict(self) -> Dict[str, Any]:
        """Serialize the graph to a workflow document."""
        return {
            "graph_id": self.graph_id,
            "name": self.name,
            "description": self.description,
            "nodes": [node.to_dict() for node in self.nodes.values()],
            "edges": [edge.to_dict() for edge in self.edges],
            "metadata": self.metadata,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Graph":
        """
        Build a graph from a workflow document.

        Raises:
            GraphError: If a node is invalid or an edge is not allowed
        """
        graph = cls(
            graph_id=data.get("graph_id") or str(uuid.uuid4()),
            name=data.get("name", "Unnamed Workflow"),
            description=data.get("description") or "",
            metadata=data.get("metadata") or {},
        )
        for node_data in data.get("nodes", []):
            graph.add_node(Node.from_dict(node_data))
        for edge_data in data.get("edges", []):
            edge = Edge.from_dict(edge_data)
            graph.add_edge(edge.source, edge.target, edge.branch_label)
        return graph

    def to_mermaid(self) -> str:
        """Generate a Mermaid diagram of the graph."""
        lines = ["graph TD"]

        for node_id, node in self.nodes.items():
            label = node.label.replace('"', "'")
            if node.kind == NodeKind.TRIGGER:
                lines.append(f'    {node_id}(["{label}"])')
            elif node.kind == NodeKind.CONDITIONAL:
                lines.append(f'    {node_id}{{"{label}"}}')
            else:
                lines.append(f'    {node_id}["{label}"]')

        for edge in self.edges:
            if edge.branch_label:
                lines.append(f"    {edge.source} -->|{edge.branch_label}| {edge.target}")
            else:
                lines.append(f"    {edge.source} --> {edge.target}")

        return "\n".join(lines)

    def __contains__(self, node_id: str) -> bool:
        return node_id in self.nodes

    def __repr__(self) -> str:
        return (
            f"Graph(name='{self.name}', nodes={list(self.nodes.keys())}, "
            f"edges={len(self.edges)})"
        )
