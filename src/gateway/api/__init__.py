"""HTTP error primitives shared by the gateway routers."""

from .errors import ApiError, error_from_exception

__all__ = ["ApiError", "error_from_exception"]
