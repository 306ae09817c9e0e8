from canvasgate.middleware.auth import get_gateway, require_subject
from canvasgate.middleware.errors import register_exception_handlers

__all__ = ["get_gateway", "register_exception_handlers", "require_subject"]
