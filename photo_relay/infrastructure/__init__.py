"""
Infrastructure layer - external service integrations.

- storage: Google Drive / S3 clients and credential parsing

These wrappers translate between the storage SDKs and our domain models.
"""
