"""
SLA Module
==========

Bounded Context for service-level deadlines.

Responsibilities:
- Compute record due times from the SLA policy
- Hot-reload the YAML policy via watchdog
- Periodically flag breached records and notify (APScheduler)
"""
