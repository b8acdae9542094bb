"""
FastAPI Dependencies for StudyMind
"""

from studymind.dependencies.auth import (
    get_current_user_id,
    get_optional_user_id,
    verify_access_token,
)

__all__ = [
    "get_current_user_id",
    "get_optional_user_id",
    "verify_access_token",
]
