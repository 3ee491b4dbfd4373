"""
URP Primitives -- the five building blocks every report is made of.

Architecture::

    entities.py       resolve_entities    typed, tenant-scoped entity lookup
    hierarchy.py      build_hierarchy     cycle-safe forest (arena of nodes)
    transactions.py   transaction_facts   grouped aggregates over lines
    rollup.py         rollup_balances     post-order balance roll-up
    dynamic_join.py   dynamic_join        sparse field values onto entities
    catalog.py        PRIMITIVES          step adapters used by recipes

Primitives are plain functions: explicit inputs in, a value out, no I/O
beyond the store they are handed.
"""

from urp.primitives.catalog import PRIMITIVES, Primitive, coerce_date_range, get_primitive
from urp.primitives.diagnostics import Diagnostic, DiagnosticCode
from urp.primitives.dynamic_join import JoinedRecord, dynamic_join
from urp.primitives.entities import resolve_entities
from urp.primitives.hierarchy import Hierarchy, HierarchyNode, build_hierarchy
from urp.primitives.rollup import NodeBalance, Rollup, rollup_balances
from urp.primitives.transactions import FactGroup, FactLine, TransactionFacts, index_by_entity, transaction_facts

__all__ = [
    "PRIMITIVES",
    "Primitive",
    "get_primitive",
    "coerce_date_range",
    "Diagnostic",
    "DiagnosticCode",
    "resolve_entities",
    "build_hierarchy",
    "Hierarchy",
    "HierarchyNode",
    "transaction_facts",
    "TransactionFacts",
    "FactGroup",
    "FactLine",
    "index_by_entity",
    "rollup_balances",
    "Rollup",
    "NodeBalance",
    "dynamic_join",
    "JoinedRecord",
]
