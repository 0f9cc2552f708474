from __future__ import annotations
import json
import time
from typing import Dict, Any, Optional

from ton_yields.config import get_settings
from ton_yields.http import HttpClient

_http: Optional[HttpClient] = None


def _client() -> HttpClient:
    global _http
    if _http is None:
        _http = HttpClient(timeout=5.0)
    return _http


async def loki_log(level: str, message: str, labels: Optional[Dict[str, str]] = None, extra: Optional[Dict[str, Any]] = None) -> None:
    """
    Push a structured event to Loki (`${LOKI_URL}/loki/api/v1/push`).
    No-op unless ENABLE_LOKI is set.
    """
    settings = get_settings()
    if not settings.ENABLE_LOKI:
        return
    ts_ns = str(int(time.time() * 1_000_000_000))
    stream = labels or {"service": "ton-yields", "env": settings.ENV, "level": level}
    payload = {
        "streams": [
            {
                "stream": stream,
                "values": [
                    [ts_ns, json.dumps({"message": message, **(extra or {})}, default=str)]
                ],
            }
        ]
    }
    url = f"{settings.LOKI_URL.rstrip('/')}/loki/api/v1/push"
    try:
        await _client().post(url, json=payload, headers={"Content-Type": "application/json"})
    except Exception:
        # Best-effort: never break the pipeline over a log line
        pass


async def close() -> None:
    global _http
    if _http is not None:
        await _http.aclose()
    _http = None
