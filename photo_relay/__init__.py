"""
Photo Relay - accepts photo uploads over HTTP and forwards them to cloud storage.

This package contains the complete application:
- core: Framework-agnostic relay logic (validation, naming, result types)
- infrastructure: Storage backend clients and credential parsing
- api: FastAPI routes, dependencies and the origin filter
- config: Application configuration
"""

__version__ = "0.1.0"
