"""
Shared utilities for the roaming settings adapter.

This package aggregates the common building blocks used by the settings
store and its Graph client:

- config: Configuration via pydantic-settings
- logging: Structured logging with trace correlation
- metrics: Prometheus metrics helpers
- errors: Canonical error types and responses
- retry: Retry decorators
- circuit_breaker: Resilient external call protection

Do not import from service_* packages into shared/.
"""
