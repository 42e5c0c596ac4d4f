"""Core module for configuration, logging, tracing, and request headers.

Patterns applied:
- Pydantic Settings with SettingsConfigDict
- Custom namespaced exceptions (no shadowing of builtins)
- One-time structlog / OpenTelemetry configuration
"""
