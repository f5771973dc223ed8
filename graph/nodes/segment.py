from typing import Optional, Tuple
from graph.state import InviteState
from config import Settings, DEFAULT_SEGMENT_KEY
from tools.calendly import CalendlyClient, CalendlyError
from loguru import logger


def resolve_by_keyword(name: Optional[str], settings: Settings) -> Tuple[str, str]:
    """Case-insensitive substring match against the keyword table, in priority order."""
    lowered = (name or "").lower()
    if lowered:
        for keyword, segment_key in settings.keywords:
            if keyword in lowered and segment_key in settings.segments:
                return segment_key, settings.segments[segment_key]
    return DEFAULT_SEGMENT_KEY, settings.default_segment_id


def resolve_by_exact_name(name: Optional[str], settings: Settings) -> Tuple[str, str]:
    """Exact event-title lookup in the segment table."""
    if name and name in settings.segments:
        return name, settings.segments[name]
    return DEFAULT_SEGMENT_KEY, settings.default_segment_id


STRATEGIES = {
    "keyword": resolve_by_keyword,
    "exact": resolve_by_exact_name,
}


def resolve_segment_id(name: Optional[str], settings: Settings) -> Tuple[str, str]:
    """Map an event-type name to (segment key, segment id)."""
    return STRATEGIES.get(settings.segment_strategy, resolve_by_keyword)(name, settings)


async def lookup_event_name(event_type: Optional[str], calendly: CalendlyClient) -> Optional[str]:
    """Fetch the event-type name from Calendly; None on any failure."""
    if not isinstance(event_type, str) or not event_type.startswith(("http://", "https://")):
        return None
    try:
        resource = await calendly.get_event_type(event_type)
    except CalendlyError as e:
        logger.warning(f"Event type lookup failed, falling back to default segment: {e} {e.details or ''}")
        return None
    name = resource.get("name")
    return name if isinstance(name, str) else None


async def resolve_segment(state: InviteState, settings: Settings, calendly: CalendlyClient) -> InviteState:
    """Resolve the CRM segment for the scheduled event."""
    scheduled_event = state.get("scheduled_event") or {}

    name = scheduled_event.get("name")
    if not isinstance(name, str) or not name.strip():
        name = await lookup_event_name(scheduled_event.get("event_type"), calendly)

    segment_key, segment_id = resolve_segment_id(name, settings)

    state["event_name"] = name
    state["segment_key"] = segment_key
    state["segment_id"] = segment_id

    logger.info(f"Event: {name or 'unknown'} -> segment {segment_key} ({segment_id or 'NOT FOUND'})")
    return state
