"""
HierarchyBuilder: turn entities plus typed edges into a forest.

The result is an arena (``Hierarchy.nodes``, keyed by entity id) rather
than a tree of nested objects, so every traversal is an explicit loop
over ids and a malformed graph can never recurse forever.

Rules, applied in this order:

    1. Only edges whose ``relationship_type`` equals the requested type
       (exact, case-sensitive) are used.
    2. Edge direction: ``parent_to_child`` reads ``from_entity_id`` as the
       parent; ``child_to_parent`` reads it as the child.
    3. Duplicate edges collapse into one. A child gets the parent of the
       first edge in store order; later parents are ignored
       (MULTIPLE_PARENTS).
    4. Edges with an endpoint outside the entity set are ignored
       (UNMATCHED_RELATIONSHIP). A child whose only parent is missing is
       an orphan: promoted to a root (ORPHAN_PROMOTED) or excluded with
       its subtree (ORPHAN_EXCLUDED).
    5. Depth-first traversal from the roots in input order. An edge into
       a node on the current path closes a cycle and is dropped
       (CYCLE_EDGE_DROPPED). Nodes no root reaches sit on or below a
       cycle; the first cycle member in input order becomes a root.
    6. ``max_depth=N``: a node deeper than N hangs off its ancestor at
       depth N-1 instead (DEPTH_TRUNCATED). Nothing is dropped for depth.

Children are ordered by input entity order, so the same inputs always
give the same tree.

Tags:
    hierarchy, tree, graph, cycles, arena, urp
"""

from __future__ import annotations

from collections.abc import Callable, Iterator, Sequence
from dataclasses import dataclass, field
from typing import Any, Literal

from urp.core.models import Entity, Relationship
from urp.primitives.diagnostics import Diagnostic, DiagnosticCode

Direction = Literal["parent_to_child", "child_to_parent"]


@dataclass
class HierarchyNode:
    """One entity placed in the forest."""

    entity: Entity
    parent_id: str | None
    depth: int
    natural_depth: int
    children: list[str] = field(default_factory=list)

    @property
    def id(self) -> str:
        return self.entity.id

    @property
    def is_root(self) -> bool:
        return self.parent_id is None


@dataclass
class Hierarchy:
    """Arena of ``HierarchyNode``s. Use ``walk()`` for pre-order traversal."""

    relationship_type: str
    nodes: dict[str, HierarchyNode] = field(default_factory=dict)
    roots: list[str] = field(default_factory=list)
    diagnostics: list[Diagnostic] = field(default_factory=list)

    def __len__(self) -> int:
        return len(self.nodes)

    def __contains__(self, entity_id: object) -> bool:
        return entity_id in self.nodes

    def __getitem__(self, entity_id: str) -> HierarchyNode:
        return self.nodes[entity_id]

    def children(self, entity_id: str) -> list[HierarchyNode]:
        return [self.nodes[c] for c in self.nodes[entity_id].children]

    def walk(self, start: str | None = None) -> Iterator[HierarchyNode]:
        """Pre-order traversal of one subtree, or of the whole forest."""
        stack = [start] if start is not None else list(reversed(self.roots))
        while stack:
            node = self.nodes[stack.pop()]
            yield node
            stack.extend(reversed(node.children))

    def post_order(self, start: str | None = None) -> Iterator[HierarchyNode]:
        """Children before parents, without recursion."""
        pending = [start] if start is not None else list(reversed(self.roots))
        visited: set[str] = set()
        while pending:
            node_id = pending[-1]
            if node_id in visited:
                pending.pop()
                yield self.nodes[node_id]
                continue
            visited.add(node_id)
            pending.extend(c for c in reversed(self.nodes[node_id].children) if c not in visited)

    def subtree_ids(self, entity_id: str) -> list[str]:
        return [n.id for n in self.walk(entity_id)]

    def ancestors(self, entity_id: str) -> list[str]:
        """Ancestor ids from the parent up to the root."""
        result: list[str] = []
        parent = self.nodes[entity_id].parent_id
        while parent is not None:
            result.append(parent)
            parent = self.nodes[parent].parent_id
        return result

    def shape(self) -> list[tuple[str, str | None, int]]:
        """``(id, parent_id, depth)`` in pre-order; equal shapes mean isomorphic trees."""
        return [(n.id, n.parent_id, n.depth) for n in self.walk()]

    def diagnostics_for(self, code: DiagnosticCode) -> list[Diagnostic]:
        return [d for d in self.diagnostics if d.code is code]

    def to_nested(self, extra: Callable[[HierarchyNode], dict[str, Any]] | None = None) -> list[dict[str, Any]]:
        """Nested ``{id, code, name, depth, children}`` dicts, one per root.

        ``extra`` adds keys to each node's dict.
        """
        rendered: dict[str, dict[str, Any]] = {}
        for node in self.walk():
            item = {
                "id": node.id,
                "code": node.entity.code,
                "name": node.entity.name,
                "depth": node.depth,
                **(extra(node) if extra is not None else {}),
                "children": [],
            }
            rendered[node.id] = item
            if node.parent_id is not None:
                rendered[node.parent_id]["children"].append(item)
        return [rendered[r] for r in self.roots]


def build_hierarchy(
    entities: Sequence[Entity],
    relationships: Sequence[Relationship],
    relationship_type: str,
    max_depth: int | None = None,
    include_orphans: bool = True,
    direction: Direction = "parent_to_child",
) -> Hierarchy:
    """
    Build a forest from ``entities`` linked by ``relationship_type`` edges.

    Args:
        entities: Nodes, in the order children should be listed
        relationships: Edges, in store order (first parent wins)
        relationship_type: Exact edge type to follow
        max_depth: Deepest depth a node may sit at (roots are depth 0)
        include_orphans: Promote children of missing parents to roots
        direction: Which end of an edge is the parent

    Returns:
        Hierarchy with nodes, roots and diagnostics.

    Raises:
        ValueError: On a negative ``max_depth`` or unknown ``direction``.
    """
    if max_depth is not None and max_depth < 0:
        raise ValueError(f"max_depth must be >= 0, got {max_depth}")
    if direction not in ("parent_to_child", "child_to_parent"):
        raise ValueError(f"Unknown direction: {direction!r}")

    by_id: dict[str, Entity] = {}
    for entity in entities:
        by_id.setdefault(entity.id, entity)
    order = {entity_id: index for index, entity_id in enumerate(by_id)}

    result = Hierarchy(relationship_type=relationship_type)
    diagnostics = result.diagnostics

    parent_of: dict[str, str] = {}
    missing_parent: dict[str, str] = {}
    seen_edges: set[tuple[str, str]] = set()

    for rel in relationships:
        if rel.relationship_type != relationship_type:
            continue
        if direction == "parent_to_child":
            parent, child = rel.from_entity_id, rel.to_entity_id
        else:
            parent, child = rel.to_entity_id, rel.from_entity_id
        if (parent, child) in seen_edges:
            continue
        seen_edges.add((parent, child))

        if child not in by_id:
            diagnostics.append(
                Diagnostic(
                    DiagnosticCode.UNMATCHED_RELATIONSHIP,
                    child,
                    f"Child {child!r} of {parent!r} is not in the entity set",
                    related_id=parent,
                )
            )
            continue
        if parent not in by_id:
            diagnostics.append(
                Diagnostic(
                    DiagnosticCode.UNMATCHED_RELATIONSHIP,
                    child,
                    f"Parent {parent!r} of {child!r} is not in the entity set",
                    related_id=parent,
                )
            )
            missing_parent.setdefault(child, parent)
            continue
        if parent == child:
            diagnostics.append(
                Diagnostic(
                    DiagnosticCode.CYCLE_EDGE_DROPPED,
                    child,
                    f"Self-referencing edge on {child!r} dropped",
                    related_id=parent,
                )
            )
            continue
        if child in parent_of:
            diagnostics.append(
                Diagnostic(
                    DiagnosticCode.MULTIPLE_PARENTS,
                    child,
                    f"{child!r} already has parent {parent_of[child]!r}; edge from {parent!r} ignored",
                    related_id=parent,
                )
            )
            continue
        parent_of[child] = parent

    children: dict[str, list[str]] = {entity_id: [] for entity_id in by_id}
    for entity_id in by_id:
        parent = parent_of.get(entity_id)
        if parent is not None:
            children[parent].append(entity_id)

    excluded: set[str] = set()
    for child, parent in missing_parent.items():
        if child in parent_of:
            continue
        if include_orphans:
            diagnostics.append(
                Diagnostic(
                    DiagnosticCode.ORPHAN_PROMOTED,
                    child,
                    f"Parent {parent!r} missing; {child!r} promoted to root",
                    related_id=parent,
                )
            )
            continue
        diagnostics.append(
            Diagnostic(
                DiagnosticCode.ORPHAN_EXCLUDED,
                child,
                f"Parent {parent!r} missing; {child!r} and its subtree excluded",
                related_id=parent,
            )
        )
        stack = [child]
        while stack:
            current = stack.pop()
            if current in excluded:
                continue
            excluded.add(current)
            stack.extend(children[current])

    visited: set[str] = set()

    def place(root_id: str) -> None:
        result.nodes[root_id] = HierarchyNode(by_id[root_id], None, 0, 0)
        result.roots.append(root_id)
        visited.add(root_id)
        path = [root_id]
        on_path = {root_id}
        stack: list[tuple[str, int]] = [(root_id, 0)]

        while stack:
            node_id, next_child = stack[-1]
            kids = children[node_id]
            if next_child >= len(kids):
                stack.pop()
                path.pop()
                on_path.discard(node_id)
                continue
            stack[-1] = (node_id, next_child + 1)
            kid = kids[next_child]

            if kid in on_path:
                diagnostics.append(
                    Diagnostic(
                        DiagnosticCode.CYCLE_EDGE_DROPPED,
                        kid,
                        f"Edge {node_id!r} -> {kid!r} closes a cycle and was dropped",
                        related_id=node_id,
                    )
                )
                continue
            if kid in visited or kid in excluded:
                continue

            natural_depth = len(path)
            if max_depth is not None and natural_depth > max_depth:
                parent_id = path[max_depth - 1] if max_depth > 0 else None
                depth = max_depth
                diagnostics.append(
                    Diagnostic(
                        DiagnosticCode.DEPTH_TRUNCATED,
                        kid,
                        f"{kid!r} at depth {natural_depth} placed at depth {max_depth}",
                        related_id=parent_id,
                    )
                )
            else:
                parent_id = node_id
                depth = natural_depth

            result.nodes[kid] = HierarchyNode(by_id[kid], parent_id, depth, natural_depth)
            if parent_id is None:
                result.roots.append(kid)
            else:
                result.nodes[parent_id].children.append(kid)
            visited.add(kid)
            path.append(kid)
            on_path.add(kid)
            stack.append((kid, 0))

    for entity_id in by_id:
        if entity_id not in parent_of and entity_id not in excluded:
            place(entity_id)

    for entity_id in by_id:
        if entity_id in visited or entity_id in excluded:
            continue
        # Unreached: walk up to the cycle this node hangs from.
        chain: list[str] = []
        current = entity_id
        while current not in chain:
            chain.append(current)
            current = parent_of[current]
        cycle = chain[chain.index(current):]
        place(min(cycle, key=order.__getitem__))

    return result
