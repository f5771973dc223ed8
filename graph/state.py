from typing import TypedDict, Optional, List, Dict, Any

class InviteState(TypedDict, total=False):
    """State shape for the invitee-to-lead workflow."""
    request_id: str
    raw: Dict[str, Any]                          # parsed webhook envelope
    event: str                                   # e.g. "invitee.created"
    invitee: Optional[Dict[str, Any]]
    scheduled_event: Optional[Dict[str, Any]]
    questions_and_answers: List[Dict[str, Any]]  # [{"question": ..., "answer": ...}]
    shape: Dict[str, Optional[str]]              # envelope shape each field came from
    event_name: Optional[str]                    # event type display name
    segment_key: str
    segment_id: str
    lead: Dict[str, Any]                         # outbound TeleForce payload
    forward_status: Optional[int]
    forward_body: Any
    errors: List[str]
    decided_path: str                            # "forwarded" | "incomplete"
