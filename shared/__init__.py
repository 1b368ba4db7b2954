"""
Shared utilities for the Mehm API Gateway.

This package aggregates common building blocks consumed by the gateway:

- config: Service configuration via pydantic-settings
- logging: Structured logging with request correlation
- metrics: Prometheus metrics helpers
- errors: Canonical error types and the JSON error envelope
- base_service: FastAPI service skeleton (health, metrics, CORS)

Do not import from service packages into shared/.
"""
