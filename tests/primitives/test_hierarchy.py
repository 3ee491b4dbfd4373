"""
Tests for urp.primitives.hierarchy.

Covers:
- Parent/child placement, depth and child order
- Isomorphism with the relationship set (shape comparison)
- Cycles and self loops (dropped edge, no infinite loop)
- Missing endpoints, orphans promoted or excluded
- Multiple parents (first edge wins)
- max_depth truncation
- Direction and relationship-type filtering
- Traversal helpers and to_nested
"""

import pytest

from urp.core.models import Entity, Relationship
from urp.primitives.diagnostics import DiagnosticCode
from urp.primitives.hierarchy import build_hierarchy

PARENT_OF = "PARENT_OF"


def entities(*ids: str) -> list[Entity]:
    return [Entity(id=i, org_id="acme", type="account", name=f"Account {i}", code=i) for i in ids]


def edges(*pairs: tuple[str, str], rel_type: str = PARENT_OF) -> list[Relationship]:
    return [Relationship(p, c, "acme", rel_type) for p, c in pairs]


class TestBasicTree:
    def test_chain(self):
        h = build_hierarchy(entities("1000", "1100", "1110"), edges(("1000", "1100"), ("1100", "1110")), PARENT_OF)
        assert h.roots == ["1000"]
        assert h.shape() == [("1000", None, 0), ("1100", "1000", 1), ("1110", "1100", 2)]
        assert h.diagnostics == []

    def test_shape_matches_relationship_set(self):
        ents = entities("A", "B", "C", "D", "E")
        rels = edges(("A", "B"), ("A", "C"), ("C", "D"))
        h = build_hierarchy(ents, rels, PARENT_OF)

        expected_parent = {c: p for p, c in [("A", "B"), ("A", "C"), ("C", "D")]}
        for node in h.walk():
            assert node.parent_id == expected_parent.get(node.id)
        assert {n.id for n in h.walk()} == {"A", "B", "C", "D", "E"}
        assert h.roots == ["A", "E"]

    def test_children_follow_entity_order(self):
        h = build_hierarchy(entities("P", "X", "Y", "Z"), edges(("P", "Z"), ("P", "X"), ("P", "Y")), PARENT_OF)
        assert [n.id for n in h.children("P")] == ["X", "Y", "Z"]

    def test_deterministic(self):
        ents = entities("A", "B", "C")
        rels = edges(("A", "B"), ("B", "C"))
        assert build_hierarchy(ents, rels, PARENT_OF).shape() == build_hierarchy(ents, rels, PARENT_OF).shape()

    def test_empty_input(self):
        h = build_hierarchy([], [], PARENT_OF)
        assert len(h) == 0
        assert h.roots == []
        assert h.to_nested() == []

    def test_duplicate_edges_collapse(self):
        h = build_hierarchy(entities("A", "B"), edges(("A", "B"), ("A", "B")), PARENT_OF)
        assert h.shape() == [("A", None, 0), ("B", "A", 1)]
        assert h.diagnostics == []


class TestCycles:
    def test_two_node_cycle_terminates(self):
        h = build_hierarchy(entities("A", "B"), edges(("A", "B"), ("B", "A")), PARENT_OF)
        assert len(h) == 2
        assert h.roots == ["A"]
        assert h["B"].parent_id == "A"
        assert len(h.diagnostics_for(DiagnosticCode.CYCLE_EDGE_DROPPED)) == 1

    def test_cycle_below_root(self):
        # R -> A -> B -> C -> A
        h = build_hierarchy(
            entities("R", "A", "B", "C"),
            edges(("R", "A"), ("A", "B"), ("B", "C"), ("C", "A")),
            PARENT_OF,
        )
        # A has two parents (R first), so the C -> A edge is ignored as a second parent.
        assert h.shape() == [("R", None, 0), ("A", "R", 1), ("B", "A", 2), ("C", "B", 3)]
        assert h.diagnostics_for(DiagnosticCode.MULTIPLE_PARENTS)

    def test_self_loop(self):
        h = build_hierarchy(entities("A"), edges(("A", "A")), PARENT_OF)
        assert h.roots == ["A"]
        assert h["A"].children == []
        assert h.diagnostics_for(DiagnosticCode.CYCLE_EDGE_DROPPED)

    def test_every_entity_placed_once(self):
        ids = [f"N{i}" for i in range(6)]
        rels = edges(*[(ids[i], ids[(i + 1) % 6]) for i in range(6)])
        h = build_hierarchy(entities(*ids), rels, PARENT_OF)
        walked = [n.id for n in h.walk()]
        assert sorted(walked) == sorted(ids)
        assert len(walked) == len(set(walked))
        assert h.roots == ["N0"]


class TestMissingEndpoints:
    def test_unknown_child_ignored(self):
        h = build_hierarchy(entities("A"), edges(("A", "ghost")), PARENT_OF)
        assert h.shape() == [("A", None, 0)]
        diag = h.diagnostics_for(DiagnosticCode.UNMATCHED_RELATIONSHIP)
        assert [d.entity_id for d in diag] == ["ghost"]

    def test_orphan_promoted(self):
        h = build_hierarchy(entities("B", "C"), edges(("ghost", "B"), ("B", "C")), PARENT_OF)
        assert h.roots == ["B"]
        assert h["C"].parent_id == "B"
        assert h.diagnostics_for(DiagnosticCode.ORPHAN_PROMOTED)[0].related_id == "ghost"

    def test_orphan_excluded_with_subtree(self):
        h = build_hierarchy(
            entities("A", "B", "C"),
            edges(("ghost", "B"), ("B", "C")),
            PARENT_OF,
            include_orphans=False,
        )
        assert h.shape() == [("A", None, 0)]
        assert h.diagnostics_for(DiagnosticCode.ORPHAN_EXCLUDED)[0].entity_id == "B"

    def test_child_with_real_parent_is_not_orphan(self):
        h = build_hierarchy(entities("A", "B"), edges(("ghost", "B"), ("A", "B")), PARENT_OF)
        assert h["B"].parent_id == "A"
        assert not h.diagnostics_for(DiagnosticCode.ORPHAN_PROMOTED)


class TestMultipleParents:
    def test_first_edge_wins(self):
        h = build_hierarchy(entities("P1", "P2", "C"), edges(("P2", "C"), ("P1", "C")), PARENT_OF)
        assert h["C"].parent_id == "P2"
        diag = h.diagnostics_for(DiagnosticCode.MULTIPLE_PARENTS)
        assert len(diag) == 1
        assert diag[0].related_id == "P1"


class TestMaxDepth:
    CHAIN = ("A", "B", "C", "D")

    def build(self, max_depth):
        return build_hierarchy(
            entities(*self.CHAIN),
            edges(("A", "B"), ("B", "C"), ("C", "D")),
            PARENT_OF,
            max_depth=max_depth,
        )

    def test_truncates_to_depth(self):
        h = self.build(1)
        assert all(n.depth <= 1 for n in h.walk())
        assert h["C"].parent_id == "A"
        assert h["D"].parent_id == "A"
        assert h["D"].natural_depth == 3
        assert len(h) == 4
        assert len(h.diagnostics_for(DiagnosticCode.DEPTH_TRUNCATED)) == 2

    def test_zero_flattens_to_roots(self):
        h = self.build(0)
        assert h.roots == ["A", "B", "C", "D"]
        assert all(n.depth == 0 for n in h.walk())

    def test_deep_enough_is_unchanged(self):
        assert self.build(3).shape() == self.build(None).shape()

    def test_negative_rejected(self):
        with pytest.raises(ValueError, match="max_depth"):
            self.build(-1)


class TestFiltersAndDirection:
    def test_other_relationship_types_ignored(self):
        rels = [*edges(("A", "B")), *edges(("B", "C"), rel_type="OWNS")]
        h = build_hierarchy(entities("A", "B", "C"), rels, PARENT_OF)
        assert h["C"].is_root

    def test_type_match_is_case_sensitive(self):
        h = build_hierarchy(entities("A", "B"), edges(("A", "B"), rel_type="parent_of"), PARENT_OF)
        assert h["B"].is_root

    def test_child_to_parent(self):
        rels = [Relationship("B", "A", "acme", "CHILD_OF")]
        h = build_hierarchy(entities("A", "B"), rels, "CHILD_OF", direction="child_to_parent")
        assert h["B"].parent_id == "A"

    def test_unknown_direction(self):
        with pytest.raises(ValueError, match="direction"):
            build_hierarchy(entities("A"), [], PARENT_OF, direction="sideways")


class TestTraversal:
    @pytest.fixture
    def tree(self):
        return build_hierarchy(
            entities("1000", "1100", "1110", "1200", "2000"),
            edges(("1000", "1100"), ("1100", "1110"), ("1000", "1200")),
            PARENT_OF,
        )

    def test_walk_pre_order(self, tree):
        assert [n.id for n in tree.walk()] == ["1000", "1100", "1110", "1200", "2000"]

    def test_post_order_children_first(self, tree):
        order = [n.id for n in tree.post_order()]
        assert order == ["1110", "1100", "1200", "1000", "2000"]

    def test_subtree_and_ancestors(self, tree):
        assert tree.subtree_ids("1100") == ["1100", "1110"]
        assert tree.ancestors("1110") == ["1100", "1000"]

    def test_to_nested(self, tree):
        nested = tree.to_nested(lambda node: {"leaf": not node.children})
        assert [n["id"] for n in nested] == ["1000", "2000"]
        first = nested[0]
        assert first["leaf"] is False
        assert [c["id"] for c in first["children"]] == ["1100", "1200"]
        assert first["children"][0]["children"][0] == {
            "id": "1110",
            "code": "1110",
            "name": "Account 1110",
            "depth": 2,
            "leaf": True,
            "children": [],
        }
