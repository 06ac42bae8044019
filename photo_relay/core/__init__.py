"""
Core relay logic.

This module is framework-agnostic - it doesn't import FastAPI, Google's
client libraries or boto3. Storage is reached through the ObjectStore
protocol, so the relay can be tested with an in-memory fake.
"""
