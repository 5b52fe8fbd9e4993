from __future__ import annotations

import json
import urllib.error
import urllib.request
from typing import Any, Dict, Mapping


class PushError(RuntimeError):
    pass


class WebhookPushTransport:
    """Posts each notification as JSON to an external push gateway."""

    def __init__(self, url: str, *, token: str | None = None, timeout_seconds: int = 10) -> None:
        self.url = url
        self.token = token
        self.timeout_seconds = max(1, int(timeout_seconds or 10))

    def send(self, payload: Mapping[str, Any]) -> Dict[str, Any]:
        return _request_json("POST", self.url, dict(payload), token=self.token, timeout=self.timeout_seconds)


def build_push_transport(config: Mapping[str, Any]) -> WebhookPushTransport | None:
    url = str(config.get("PUSH_WEBHOOK_URL") or "").strip()
    if not url:
        return None
    return WebhookPushTransport(
        url,
        token=str(config.get("PUSH_WEBHOOK_TOKEN") or "").strip() or None,
        timeout_seconds=int(config.get("PUSH_TIMEOUT_SECONDS") or 10),
    )


def _request_json(method: str, url: str, payload: dict | None, *, token: str | None, timeout: int) -> Dict[str, Any]:
    headers = {"Accept": "application/json"}
    if token:
        headers["Authorization"] = f"Bearer {token}"

    data = None
    if payload is not None:
        headers["Content-Type"] = "application/json"
        data = json.dumps(payload, separators=(",", ":"), ensure_ascii=False, default=str).encode("utf-8")

    request = urllib.request.Request(url, data=data, headers=headers, method=method.upper())
    try:
        with urllib.request.urlopen(request, timeout=timeout) as response:
            body = response.read().decode("utf-8")
            if not body:
                return {}
            parsed = json.loads(body)
            return parsed if isinstance(parsed, dict) else {"result": parsed}
    except urllib.error.HTTPError as exc:  # noqa: PERF203
        error_body = exc.read().decode("utf-8") if exc.fp else ""
        raise PushError(f"push HTTP {exc.code}: {error_body[:200]}") from exc
    except urllib.error.URLError as exc:
        raise PushError(f"push connection error: {exc.reason}") from exc
    except json.JSONDecodeError as exc:
        raise PushError("push gateway returned invalid JSON") from exc
