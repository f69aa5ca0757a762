"""
Core Module
============

Shared core utilities and abstractions used across the application.

This module contains framework-agnostic code that defines the fundamental
building blocks of the system.
"""

from caseflow.core.exceptions import (
    ApplicationException,
    DomainException,
    RepositoryException,
    ValidationException,
    ResourceNotFoundException,
    ConfigurationException,
    ExternalServiceException,
    TransitionNotFoundException,
    InvalidTopologyException,
    ForbiddenException,
    TerminalStateException,
    RequirementsNotMetException,
    StaleVersionException,
    HasDependentRecordsException,
    AmbiguousMatchException,
    ImmutableRecordException,
)
from caseflow.core.clock import Clock, SystemClock, FixedClock

__all__ = [
    "ApplicationException",
    "DomainException",
    "RepositoryException",
    "ValidationException",
    "ResourceNotFoundException",
    "ConfigurationException",
    "ExternalServiceException",
    "TransitionNotFoundException",
    "InvalidTopologyException",
    "ForbiddenException",
    "TerminalStateException",
    "RequirementsNotMetException",
    "StaleVersionException",
    "HasDependentRecordsException",
    "AmbiguousMatchException",
    "ImmutableRecordException",
    "Clock",
    "SystemClock",
    "FixedClock",
]
