from datetime import datetime, timezone


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def to_utc_iso(value: datetime) -> str:
    """ISO-8601 string in UTC; naive datetimes are taken to be UTC already."""
    if value.tzinfo is None:
        value = value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc).isoformat().replace("+00:00", "Z")


def shopify_gid(resource: str, numeric_id) -> str:
    """gid://shopify/<Resource>/<id>; returns the value unchanged when it already is a gid."""
    value = str(numeric_id)
    if value.startswith("gid://"):
        return value
    return f"gid://shopify/{resource}/{value}"
