"""
SLA Policy and Calculator
=========================

Due time = start + base hours x priority multiplier, where base hours come
from the record's current state (``sla_hours``) or, failing that, from the
policy default for the record type.
"""

from datetime import datetime, timedelta
from typing import Dict, List, Optional

from pydantic import BaseModel, Field, field_validator

from caseflow.config import VALID_RECORD_TYPES


class SLAPolicy(BaseModel):
    """
    SLA policy loaded from YAML.

    This is a value object - immutable and defined by its attributes.
    """
    default_hours: Dict[str, float] = Field(
        default_factory=lambda: {"incident": 24.0, "request": 72.0, "complaint": 48.0, "query": 48.0},
        description="Base SLA hours per record type when the state sets none"
    )
    priority_multipliers: Dict[int, float] = Field(
        default_factory=lambda: {1: 0.25, 2: 0.5, 3: 1.0, 4: 1.5, 5: 2.0},
        description="Multiplier per priority level (1 = most urgent)"
    )
    breach_recipients: List[str] = Field(
        default_factory=lambda: ["assignee"],
        description="Recipients notified when a record breaches"
    )

    @field_validator("default_hours")
    @classmethod
    def validate_default_hours(cls, v: Dict[str, float]) -> Dict[str, float]:
        unknown = [k for k in v if k not in VALID_RECORD_TYPES]
        if unknown:
            raise ValueError(f"Unknown record types in default_hours: {', '.join(unknown)}")
        if any(hours <= 0 for hours in v.values()):
            raise ValueError("default_hours must be positive")
        return v

    @field_validator("priority_multipliers")
    @classmethod
    def validate_multipliers(cls, v: Dict[int, float]) -> Dict[int, float]:
        for priority, multiplier in v.items():
            if not 1 <= priority <= 5:
                raise ValueError(f"Priority {priority} is outside 1..5")
            if multiplier <= 0:
                raise ValueError(f"Multiplier for priority {priority} must be positive")
        return v

    def multiplier(self, priority: int) -> float:
        return self.priority_multipliers.get(priority, 1.0)


class SLACalculator:
    """Pure functions for SLA calculations."""

    @staticmethod
    def base_hours(policy: SLAPolicy, record_type: str, state_hours: Optional[float]) -> Optional[float]:
        if state_hours:
            return state_hours
        return policy.default_hours.get(record_type)

    @staticmethod
    def due_at(
        policy: SLAPolicy,
        start: datetime,
        record_type: str,
        priority: int,
        state_hours: Optional[float] = None
    ) -> Optional[datetime]:
        """None when neither the state nor the policy sets an SLA."""
        hours = SLACalculator.base_hours(policy, record_type, state_hours)
        if not hours:
            return None
        return start + timedelta(hours=hours * policy.multiplier(priority))

    @staticmethod
    def is_breached(due_at: Optional[datetime], now: datetime) -> bool:
        return due_at is not None and due_at < now
