"""
Wormhole Application Layer

This package exposes the resolution engine as a small aiohttp service and
holds the pieces shared by the service and the command line tool.

Key Components:
- cli.py: Entry point for running the web server
- server.py: Web server configuration, middleware and startup/shutdown
- config.py: Configuration management using Pydantic settings
- orchestrator.py: The Wormhole orchestrator tying parsing, cache and
  resolver together
- metrics.py: Metrics abstraction over aio-statsd
- handlers/: Request handlers for the internal API

The application uses two middleware layers:
- Statsd middleware for metrics collection
- Sentry middleware for error reporting

It provides the following endpoints:
- GET /internal/alive: liveness probe
- GET /internal/api/resolve?input=...: canonical record and destinations
- GET /internal/api/cache: cache statistics
- DELETE /internal/api/cache: clear the cache
"""
