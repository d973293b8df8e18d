import logging

logger = logging.getLogger("storefront.auth")


def log_auth_event(action: str, request, status: str = "success", extra: dict | None = None):
    """Emit `auth.<action>` with the client address and outcome; never the credentials."""
    forwarded = request.META.get("HTTP_X_FORWARDED_FOR", "")
    payload = {
        "event": f"auth.{action}",
        "ip": forwarded.split(",")[0].strip() if forwarded else request.META.get("REMOTE_ADDR"),
        "status": status,
    }
    if extra:
        payload.update(extra)
    level = logging.INFO if status == "success" else logging.WARNING
    logger.log(level, payload["event"], extra=payload)
