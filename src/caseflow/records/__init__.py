"""
Records Module
==============

Bounded Context for records (incidents, requests, complaints, queries).

Responsibilities:
- Create records in their workflow's initial state
- Guarded field updates, comments, attachments and assignment
- The transition engine: requirement validation, state commit, actions
- Conversion of a record into a linked request
"""
