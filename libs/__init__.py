"""Shared libraries for the classifier serving platform.

Subpackages:
- ``libs.common``: configuration, structured logging, and metrics.

Notes:
- Avoid service-specific logic; keep modules cohesive and broadly useful.
"""
