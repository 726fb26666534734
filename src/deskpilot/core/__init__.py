"""
Core Module
============

Shared core utilities and abstractions used across the application.

This module contains framework-agnostic code that defines the fundamental
building blocks of the system.
"""

from deskpilot.core.exceptions import (
    ApplicationException,
    ValidationException,
    ResourceNotFoundException,
    ConfigurationException,
    AuthenticationException,
    RateLimitExceededException,
    ExternalServiceException,
    LLMException,
    VectorStoreException,
    TicketingException,
)

__all__ = [
    "ApplicationException",
    "ValidationException",
    "ResourceNotFoundException",
    "ConfigurationException",
    "AuthenticationException",
    "RateLimitExceededException",
    "ExternalServiceException",
    "LLMException",
    "VectorStoreException",
    "TicketingException",
]
