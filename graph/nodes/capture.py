from typing import Dict, Any, Optional, List, Callable, Tuple
from graph.state import InviteState
from loguru import logger

# Keys that mark `payload` itself as the invitee resource
INVITEE_MARKERS = ("email", "name", "first_name", "last_name", "uri")


def _as_dict(value: Any) -> Optional[Dict[str, Any]]:
    return value if isinstance(value, dict) else None


def _as_list(value: Any) -> Optional[List[Any]]:
    return value if isinstance(value, list) else None


# Shape "flat": {"event", "payload": {<invitee fields>, "scheduled_event", "questions_and_answers"}}

def flat_invitee(raw: Dict[str, Any]) -> Optional[Dict[str, Any]]:
    payload = _as_dict(raw.get("payload"))
    if payload and any(key in payload for key in INVITEE_MARKERS):
        return payload
    return None


def flat_scheduled_event(raw: Dict[str, Any]) -> Optional[Dict[str, Any]]:
    payload = _as_dict(raw.get("payload")) or {}
    return _as_dict(payload.get("scheduled_event"))


def flat_answers(raw: Dict[str, Any]) -> Optional[List[Any]]:
    payload = _as_dict(raw.get("payload")) or {}
    return _as_list(payload.get("questions_and_answers"))


# Shape "nested": {"event", "data": {"invitee", "event", "payload": {"questions_and_answers"}}}

def nested_invitee(raw: Dict[str, Any]) -> Optional[Dict[str, Any]]:
    data = _as_dict(raw.get("data")) or {}
    return _as_dict(data.get("invitee"))


def nested_scheduled_event(raw: Dict[str, Any]) -> Optional[Dict[str, Any]]:
    data = _as_dict(raw.get("data")) or {}
    return _as_dict(data.get("event"))


def nested_answers(raw: Dict[str, Any]) -> Optional[List[Any]]:
    data = _as_dict(raw.get("data")) or {}
    payload = _as_dict(data.get("payload")) or {}
    return _as_list(payload.get("questions_and_answers"))


# Resolution order per field: first shape that yields a value wins
SHAPES: Dict[str, Tuple[Tuple[str, Callable[[Dict[str, Any]], Any]], ...]] = {
    "invitee": (("flat", flat_invitee), ("nested", nested_invitee)),
    "scheduled_event": (("flat", flat_scheduled_event), ("nested", nested_scheduled_event)),
    "questions_and_answers": (("flat", flat_answers), ("nested", nested_answers)),
}


def locate(raw: Dict[str, Any], field: str) -> Tuple[Any, Optional[str]]:
    """Try each known shape for `field` in order; return (value, shape name)."""
    for shape_name, locator in SHAPES[field]:
        value = locator(raw)
        if value is not None:
            return value, shape_name
    return None, None


def clean_answers(entries: List[Any]) -> List[Dict[str, Any]]:
    """Keep well-formed question/answer pairs, in order."""
    cleaned = []
    for entry in entries:
        if not isinstance(entry, dict) or entry.get("question") is None:
            continue
        answer = entry.get("answer")
        cleaned.append({
            "question": str(entry["question"]),
            "answer": "" if answer is None else answer,
        })
    return cleaned


def normalize(raw: Dict[str, Any]) -> Dict[str, Any]:
    """Extract invitee, scheduled event and answers from a webhook envelope."""
    invitee, invitee_shape = locate(raw, "invitee")
    scheduled_event, event_shape = locate(raw, "scheduled_event")
    answers, answers_shape = locate(raw, "questions_and_answers")

    return {
        "invitee": invitee,
        "scheduled_event": scheduled_event,
        "questions_and_answers": clean_answers(answers or []),
        "shape": {
            "invitee": invitee_shape,
            "scheduled_event": event_shape,
            "questions_and_answers": answers_shape,
        },
    }


def capture(state: InviteState) -> InviteState:
    """Normalize the incoming webhook envelope into invitee/event/answers."""
    raw = state.get("raw", {})
    logger.info(f"Starting capture for event: {raw.get('event', 'unknown')}")

    normalized = normalize(raw)
    state.update(normalized)

    missing = [field for field in ("invitee", "scheduled_event") if not normalized[field]]
    if missing:
        error_msg = f"Missing required fields: {missing}"
        logger.warning(f"{error_msg} (top-level keys: {sorted(raw.keys())})")
        state.setdefault("errors", []).append(error_msg)
        state["decided_path"] = "incomplete"
    else:
        logger.info(
            f"Capture completed: invitee={normalized['invitee'].get('email', 'unknown')} "
            f"answers={len(normalized['questions_and_answers'])} shape={normalized['shape']}"
        )

    return state
