"""
Audit Module
============

Bounded Context for the append-only revision log.

Responsibilities:
- Append one revision per record mutation
- Paginated, filtered queries ordered newest first
- Authorized retention purge
"""
