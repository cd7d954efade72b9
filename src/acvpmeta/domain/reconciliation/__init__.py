"""Reconciliation of local definitions with the registry."""

from __future__ import annotations

from .definition import DefinitionReport, reconcile_definition, reconcile_definitions
from .engine import EntityState, Matcher, ReconcileOutcome, Reconciler
from .environment import environment_matcher, reconcile_environment
from .vendor import reconcile_module, reconcile_vendor

__all__ = [
    "DefinitionReport",
    "EntityState",
    "Matcher",
    "ReconcileOutcome",
    "Reconciler",
    "environment_matcher",
    "reconcile_definition",
    "reconcile_definitions",
    "reconcile_environment",
    "reconcile_module",
    "reconcile_vendor",
]
