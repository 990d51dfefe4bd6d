"""
JSON output helpers for the CLI.
"""

import json
from datetime import datetime
from typing import Any, Dict, List, Optional


class DateTimeEncoder(json.JSONEncoder):
    """JSON encoder that handles datetime objects."""

    def default(self, obj):
        if isinstance(obj, datetime):
            return obj.isoformat()
        return super().default(obj)


def make_listing(items: List[Dict[str, Any]]) -> str:
    """Render listing rows as a JSON document."""
    return json.dumps({"count": len(items), "items": items}, indent=2, cls=DateTimeEncoder)


def make_error(error_type: str, message: str, suggestion: Optional[str] = None) -> str:
    """Create a machine-readable error body."""
    error_body: Dict[str, Any] = {"type": error_type, "message": message}
    if suggestion:
        error_body["suggestion"] = suggestion
    return json.dumps({"_error": error_body}, indent=2, cls=DateTimeEncoder)
