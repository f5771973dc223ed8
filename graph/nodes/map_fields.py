import re
from typing import Dict, Any, List, Optional, Sequence
from graph.state import InviteState
from config import Settings
from loguru import logger

_WHITESPACE = re.compile(r"\s+")


def present(value: Any) -> Optional[str]:
    """Trimmed text of `value`, or None when it is empty."""
    if value is None:
        return None
    text = str(value).strip()
    return text or None


def full_name(invitee: Dict[str, Any]) -> str:
    name = present(invitee.get("name"))
    if name:
        return name
    parts = [present(invitee.get("first_name")), present(invitee.get("last_name"))]
    joined = " ".join(part for part in parts if part)
    return joined or "Unknown"


def mobile_number(invitee: Dict[str, Any], answers: List[Dict[str, Any]], scan_answers: bool = True) -> str:
    for key in ("text_reminder_number", "phone_number"):
        number = present(invitee.get(key))
        if number:
            return number
    if scan_answers:
        for qa in answers:
            if "mobile" in qa["question"].lower():
                answer = present(qa.get("answer"))
                if answer:
                    return _WHITESPACE.sub(" ", answer)
    return ""


def first_answer(answers: List[Dict[str, Any]], keys: Sequence[str]) -> str:
    """First non-blank answer, trying `keys` in order and answers in input order."""
    for key in keys:
        for qa in answers:
            if qa["question"] != key:
                continue
            value = present(qa.get("answer"))
            if value:
                return value
    return ""


def meta_key(question: str) -> str:
    return _WHITESPACE.sub("_", question)


def build_otherparams(state: InviteState, consumed: set) -> List[Dict[str, Any]]:
    invitee = state.get("invitee") or {}
    scheduled_event = state.get("scheduled_event") or {}

    otherparams = []
    for qa in state.get("questions_and_answers", []):
        if qa["question"] in consumed:
            continue
        otherparams.append({"meta_key": meta_key(qa["question"]), "meta_value": qa.get("answer")})

    # Fixed metadata, always after the per-question entries
    otherparams.append({"meta_key": "Segment_Name", "meta_value": state.get("event_name") or state.get("segment_key", "")})
    otherparams.append({"meta_key": "Scheduled_Time", "meta_value": scheduled_event.get("start_time") or ""})
    optional = (
        ("Scheduled_End_Time", scheduled_event.get("end_time")),
        ("Timezone", invitee.get("timezone")),
        ("Event_URI", scheduled_event.get("uri")),
    )
    for key, value in optional:
        if present(value):
            otherparams.append({"meta_key": key, "meta_value": value})

    return otherparams


def build_lead(state: InviteState, settings: Settings) -> Dict[str, Any]:
    """Build the TeleForce lead payload from a normalized invite."""
    invitee = state.get("invitee") or {}
    answers = state.get("questions_and_answers", [])
    fields = settings.fields_for(state.get("segment_key", ""))

    city_keys = fields.get("city", ())
    address_keys = fields.get("address", ())
    consumed = set(city_keys) | set(address_keys) if settings.exclude_consumed_answers else set()

    return {
        "name": full_name(invitee),
        "email": present(invitee.get("email")) or "",
        "mobile": mobile_number(invitee, answers, settings.mobile_from_answers),
        "city": first_answer(answers, city_keys),
        "address": first_answer(answers, address_keys),
        "usergroupid": settings.teleforce_account_id,
        "segmentid": state.get("segment_id", ""),
        "otherparams": build_otherparams(state, consumed),
    }


def map_fields(state: InviteState, settings: Settings) -> InviteState:
    """Map the normalized invite onto the TeleForce lead schema."""
    lead = build_lead(state, settings)
    state["lead"] = lead
    logger.info(
        f"Lead mapped: name={lead['name']} email={lead['email'] or '-'} city={lead['city'] or '-'} "
        f"segmentid={lead['segmentid']} otherparams={len(lead['otherparams'])}"
    )
    return state
