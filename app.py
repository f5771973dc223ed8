import json
import time
import uuid
from typing import Optional
from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse
from loguru import logger
from langgraph.graph import StateGraph, START, END
from dotenv import load_dotenv

# Import our modules
from config import Settings, load_settings
from graph.state import InviteState
from graph.nodes.capture import capture
from graph.nodes.segment import resolve_segment
from graph.nodes.map_fields import map_fields
from graph.nodes.forward import forward
from tools.calendly import CalendlyClient, CalendlyError
from tools.teleforce import TeleForceClient, ForwardError
from tools.signature import SIGNATURE_HEADER, verify_signature

# Load environment variables
load_dotenv()
settings = load_settings()

# Configure logging; every line carries the per-request correlation id
logger.configure(extra={"request_id": "-"})
if settings.log_file:
    logger.add(
        settings.log_file,
        rotation="1 day",
        retention="7 days",
        level="INFO",
        format="{time:YYYY-MM-DD HH:mm:ss.SSS} | {level: <8} | {extra[request_id]} | {name}:{function}:{line} - {message}",
    )

# Initialize FastAPI app
app = FastAPI(
    title="Calendly to TeleForce Lead Bridge",
    description="Relays Calendly invitee.created webhooks to the TeleForce lead API",
    version="1.0.0"
)


def build_workflow(settings: Settings, calendly: CalendlyClient, teleforce: TeleForceClient):
    """Build the webhook-to-lead workflow."""
    workflow = StateGraph(InviteState)

    async def segment_node(state: InviteState) -> InviteState:
        return await resolve_segment(state, settings, calendly)

    def map_node(state: InviteState) -> InviteState:
        return map_fields(state, settings)

    async def forward_node(state: InviteState) -> InviteState:
        return await forward(state, teleforce)

    # Add nodes
    workflow.add_node("capture", capture)
    workflow.add_node("segment", segment_node)
    workflow.add_node("map_fields", map_node)
    workflow.add_node("forward", forward_node)

    # Stop early when the invitee or the scheduled event could not be located
    def branch_decision(state: InviteState) -> str:
        if state.get("decided_path") == "incomplete":
            return "incomplete"
        return "segment"

    workflow.add_edge(START, "capture")
    workflow.add_conditional_edges(
        "capture",
        branch_decision,
        {
            "segment": "segment",
            "incomplete": END
        }
    )
    workflow.add_edge("segment", "map_fields")
    workflow.add_edge("map_fields", "forward")
    workflow.add_edge("forward", END)

    return workflow.compile()


# Initialize clients and workflow
calendly = CalendlyClient(settings)
teleforce = TeleForceClient(settings)
app_graph = build_workflow(settings, calendly, teleforce)


@app.get("/health")
def health():
    """Health check endpoint."""
    return {"status": "OK"}


@app.post("/api/webhook")
async def calendly_webhook(req: Request):
    """
    Calendly webhook endpoint.

    Expected payload:
    {
        "event": "invitee.created",
        "payload": {
            "name": "Jane Doe",
            "email": "jane@example.com",
            "questions_and_answers": [{"question": "City", "answer": "Austin"}],
            "scheduled_event": {"name": "Website CRO Meet", "start_time": "2024-01-01T10:00:00Z"}
        }
    }
    """
    start_time = time.time()
    request_id = uuid.uuid4().hex

    with logger.contextualize(request_id=request_id):
        raw_body = await req.body()

        try:
            payload = json.loads(raw_body)
        except (json.JSONDecodeError, UnicodeDecodeError) as e:
            logger.warning(f"Rejected malformed JSON body ({len(raw_body)} bytes) after {time.time() - start_time:.2f}s: {e}")
            return JSONResponse(
                status_code=400,
                content={"success": False, "error": "Invalid JSON payload"}
            )

        if not isinstance(payload, dict):
            logger.warning(f"Rejected non-object JSON body after {time.time() - start_time:.2f}s: {type(payload).__name__}")
            return JSONResponse(
                status_code=400,
                content={"success": False, "error": "Webhook body must be a JSON object"}
            )

        if settings.verify_signature:
            signature = req.headers.get(SIGNATURE_HEADER)
            if not verify_signature(raw_body, signature, settings.signing_key, settings.signature_tolerance):
                logger.warning(f"Rejected webhook with invalid signature after {time.time() - start_time:.2f}s (header present: {signature is not None})")
                return JSONResponse(
                    status_code=401,
                    content={"success": False, "error": "Invalid webhook signature"}
                )

        event = payload.get("event")
        logger.info(f"Webhook received: {event}")

        if event != "invitee.created":
            logger.info(f"Ignoring event: {event} ({time.time() - start_time:.2f}s)")
            return JSONResponse(status_code=200, content={"message": "Event ignored"})

        initial_state = {
            "request_id": request_id,
            "raw": payload,
            "event": event,
            "errors": []
        }

        try:
            result = await app_graph.ainvoke(initial_state)
        except ForwardError as e:
            logger.error(f"Lead forwarding failed after {time.time() - start_time:.2f}s: {e}")
            return JSONResponse(
                status_code=500,
                content={"success": False, "error": str(e), "details": e.details}
            )
        except Exception as e:
            logger.exception(f"Webhook processing failed: {e}")
            return JSONResponse(
                status_code=500,
                content={"success": False, "error": str(e), "details": None}
            )

        processing_time = time.time() - start_time

        if result.get("decided_path") == "incomplete":
            logger.warning(f"Webhook acknowledged without forwarding in {processing_time:.2f}s: {result.get('errors')}")
            return JSONResponse(
                status_code=200,
                content={"success": False, "error": "Missing invitee or scheduled event data"}
            )

        logger.info(f"Lead processing completed in {processing_time:.2f}s: segment={result.get('segment_key')}")
        return JSONResponse(
            status_code=200,
            content={
                "success": True,
                "message": "Lead sent to TeleForce",
                "segment": result.get("event_name"),
                "segmentKey": result.get("segment_key"),
                "segmentid": result.get("segment_id")
            }
        )


@app.get("/register-webhook")
async def register_webhook(
    url: Optional[str] = None,
    organization: Optional[str] = None,
    scope: str = "organization",
    user: Optional[str] = None,
):
    """Register this service's webhook URL with Calendly."""
    missing = [name for name, value in (("url", url), ("organization", organization)) if not value]
    if missing:
        return JSONResponse(
            status_code=400,
            content={"success": False, "error": f"Missing required query parameters: {', '.join(missing)}"}
        )

    logger.info(f"Registering webhook: {url} (scope={scope})")

    try:
        data = await calendly.create_webhook_subscription(url, organization, scope=scope, user=user)
    except CalendlyError as e:
        logger.error(f"Registration error: {e} {e.details or ''}")
        return JSONResponse(
            status_code=500,
            content={"success": False, "error": str(e), "details": e.details}
        )

    return {
        "success": True,
        "message": "Webhook registered in Calendly",
        "data": data
    }


# Error handlers
@app.exception_handler(Exception)
async def global_exception_handler(request: Request, exc: Exception):
    logger.error(f"Unhandled exception: {exc}")
    return JSONResponse(
        status_code=500,
        content={"success": False, "error": "Internal server error", "details": None}
    )


if __name__ == "__main__":
    import uvicorn

    logger.info("Starting Calendly to TeleForce Lead Bridge")
    logger.info(f"Webhook endpoint: http://localhost:{settings.port}/api/webhook")

    uvicorn.run(
        "app:app",
        host="0.0.0.0",
        port=settings.port,
        log_level="info"
    )
