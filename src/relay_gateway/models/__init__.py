"""
Models package for the HTTP Relay Gateway

Contains data models organized by domain:
- forwarding: value types built and discarded per relayed call
- api: response models for the non-relay FastAPI routes
"""
