"""
Shared Kernel Module
====================

Shared infrastructure used across all bounded contexts (workflow, matching,
records, sla, audit).

Architecture Pattern: Modular Monolith
- Each module is a bounded context
- Shared kernel contains only generic infrastructure
- Domain models live within each module

DO NOT add workflow or record business logic to the shared kernel.
"""
