"""Helpers for reading backend responses in the HTTP clients."""


def backend_error_message(resp) -> str:
    """Best-effort ``error`` field of a JSON error body, else the status line."""
    try:
        body = resp.json()
    except ValueError:
        body = None
    if isinstance(body, dict) and body.get("error"):
        return str(body["error"])
    return f"HTTP {resp.status_code}: {resp.reason or 'request failed'}"
