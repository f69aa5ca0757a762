"""
Workflow Module
===============

Bounded Context owning workflow definitions.

Responsibilities:
- Store workflows, states, transitions, requirements and actions
- Answer graph queries (initial state, outgoing transitions)
- Manage the soft-delete / restore / purge lifecycle
- Duplicate, validate, export and import definitions
"""
