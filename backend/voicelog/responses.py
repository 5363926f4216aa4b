"""Uniform success/failure envelopes returned by every API route."""

from __future__ import annotations

import time
from datetime import datetime, timezone
from typing import Any, Optional


def request_meta() -> dict[str, str]:
    now = datetime.now(timezone.utc)
    return {
        "timestamp": now.isoformat(timespec="milliseconds").replace("+00:00", "Z"),
        "requestId": f"req_{int(time.time() * 1000)}",
    }


def success_envelope(data: Any, pagination: Optional[dict] = None) -> dict[str, Any]:
    body: dict[str, Any] = {"success": True, "data": data}
    if pagination is not None:
        body["pagination"] = pagination
    body["meta"] = request_meta()
    return body


def error_envelope(error: dict[str, Any]) -> dict[str, Any]:
    return {"success": False, "error": error, "meta": request_meta()}
