"""
Brave Gateway Application Layer

This package implements the web application layer of the gateway using the aiohttp framework.

Key Components:
- cli.py: Entry point for running the application
- server.py: Web server configuration and middleware setup
- config.py: Configuration management using Pydantic settings
- handlers/: Request handlers for the pipeline and internal endpoints
- tasks.py: Background tasks for health and cache monitoring
- metrics.py: Metrics clients for Telegraf, OpenTelemetry or nothing
- health.py: Failure gauge behind the readiness probe

The application uses two middleware layers:
- Metrics middleware for request counts and timings
- Sentry middleware for error reporting

It serves the following endpoints:
- Internal endpoints (/internal/alive, /internal/ready, /internal/api/resolve)
- Every other path on any method: the resolution and delivery pipeline
"""
