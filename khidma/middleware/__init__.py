# -*- coding: utf-8 -*-
"""
Middleware package for the Khidma API
"""

from .errors import (
    MarketplaceError,
    AuthenticationError,
    AuthorizationError,
    ValidationError,
    NotFoundError,
    ConflictError,
    UpstreamError,
    register_error_handlers,
)

__all__ = [
    'MarketplaceError',
    'AuthenticationError',
    'AuthorizationError',
    'ValidationError',
    'NotFoundError',
    'ConflictError',
    'UpstreamError',
    'register_error_handlers',
]
