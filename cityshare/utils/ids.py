from uuid import UUID


def parse_uuid(value) -> UUID | None:
    if isinstance(value, UUID):
        return value
    try:
        return UUID(str(value))
    except (TypeError, ValueError):
        return None


def conversation_id_for(a, b) -> str:
    """Deterministic key for the unordered pair (a, b)."""
    left, right = sorted((str(a), str(b)))
    return f"{left}:{right}"


def conversation_participants(conversation_id: str) -> tuple[UUID, UUID] | None:
    parts = (conversation_id or "").split(":")
    if len(parts) != 2:
        return None
    a, b = parse_uuid(parts[0]), parse_uuid(parts[1])
    if a is None or b is None:
        return None
    return a, b
