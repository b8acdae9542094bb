"""
StudyMind Utilities Package

Contains:
- gateway_client: Lazy-initialized AI gateway client
"""

from studymind.utils.gateway_client import GatewayConfigError, get_gateway_client, reset_client

__all__ = [
    "GatewayConfigError",
    "get_gateway_client",
    "reset_client"
]
