from graph.state import InviteState
from tools.teleforce import TeleForceClient
from loguru import logger


async def forward(state: InviteState, teleforce: TeleForceClient) -> InviteState:
    """Send the mapped lead to TeleForce. ForwardError propagates to the caller."""
    lead = state.get("lead", {})
    logger.info(f"Sending lead to TeleForce: {lead.get('email') or lead.get('name')}")

    status, body = await teleforce.send_lead(lead)

    state["forward_status"] = status
    state["forward_body"] = body
    state["decided_path"] = "forwarded"
    logger.info(f"TeleForce accepted lead ({status}): {body}")
    return state
