"""
Adapters package for the Gateway Service.

Contains the HTTP client used to reach the upstream user and mehm
services. Keep adapters thin and side-effect free outside of explicit calls.
"""

from .upstream_client import UpstreamClient

__all__ = [
    "UpstreamClient",
]
