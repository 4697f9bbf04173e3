"""Success envelope shared by every endpoint."""
from typing import Any

from app.utils.time import utcnow


def success_response(data: Any, message: str = "Success") -> dict[str, Any]:
    """Wrap ``data`` in the standard success payload."""

    return {
        "success": True,
        "message": message,
        "data": data,
        "timestamp": utcnow().isoformat(),
    }


__all__ = ["success_response"]
