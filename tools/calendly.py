import httpx
from typing import Dict, Any, Optional, Sequence
from loguru import logger
from config import Settings


class CalendlyError(Exception):
    """Raised when a Calendly API call fails."""

    def __init__(self, message: str, status_code: Optional[int] = None, details: Any = None):
        super().__init__(message)
        self.status_code = status_code
        self.details = details


def response_details(response: httpx.Response) -> Any:
    """Decode an error body as JSON when possible, otherwise return the text."""
    try:
        return response.json()
    except ValueError:
        return response.text or None


class CalendlyClient:
    """Calendly API client for event-type lookups and webhook subscriptions."""

    def __init__(self, settings: Settings):
        self.token = settings.calendly_token
        self.base_url = settings.calendly_api_base.rstrip("/")
        self.timeout = settings.calendly_timeout

        if not self.token:
            logger.warning("No Calendly access token provided, event-type lookups are disabled")

    def _get_headers(self) -> Dict[str, str]:
        return {
            "Authorization": f"Bearer {self.token}",
            "Content-Type": "application/json"
        }

    def owns(self, uri: Optional[str]) -> bool:
        """True when `uri` points at the configured Calendly API."""
        return isinstance(uri, str) and uri.startswith(self.base_url + "/")

    async def get_event_type(self, uri: str) -> Dict[str, Any]:
        """
        Fetch an event-type resource by its API URI.

        Args:
            uri: Event type URI, e.g. https://api.calendly.com/event_types/<uuid>

        Returns:
            The event type resource (has a "name" key)
        """
        if not self.token:
            raise CalendlyError("Calendly access token not configured")
        if not self.owns(uri):
            raise CalendlyError(f"Refusing to fetch event type outside {self.base_url}: {uri}")

        try:
            async with httpx.AsyncClient(timeout=self.timeout) as client:
                response = await client.get(uri, headers=self._get_headers())
                response.raise_for_status()
                data = response.json()
        except httpx.HTTPStatusError as e:
            raise CalendlyError(
                f"Event type lookup failed with status {e.response.status_code}",
                e.response.status_code,
                response_details(e.response),
            ) from e
        except httpx.HTTPError as e:
            raise CalendlyError(f"Event type lookup failed: {e}") from e
        except ValueError as e:
            raise CalendlyError(f"Event type lookup returned invalid JSON: {e}") from e

        resource = data.get("resource") if isinstance(data, dict) else None
        if not isinstance(resource, dict):
            raise CalendlyError("Event type lookup returned no resource", details=data)
        return resource

    async def create_webhook_subscription(
        self,
        url: str,
        organization: str,
        scope: str = "organization",
        user: Optional[str] = None,
        events: Sequence[str] = ("invitee.created",),
    ) -> Dict[str, Any]:
        """
        Register `url` to receive Calendly webhooks.

        Returns:
            Calendly's response body
        """
        if not self.token:
            raise CalendlyError("Calendly access token not configured")

        body = {
            "url": url,
            "events": list(events),
            "organization": organization,
            "scope": scope,
        }
        if user:
            body["user"] = user

        try:
            async with httpx.AsyncClient(timeout=self.timeout) as client:
                response = await client.post(
                    f"{self.base_url}/webhook_subscriptions",
                    headers=self._get_headers(),
                    json=body
                )
                response.raise_for_status()
        except httpx.HTTPStatusError as e:
            raise CalendlyError(
                f"Webhook registration failed with status {e.response.status_code}",
                e.response.status_code,
                response_details(e.response),
            ) from e
        except httpx.HTTPError as e:
            raise CalendlyError(f"Webhook registration failed: {e}") from e

        logger.info(f"Webhook registered with Calendly: {url}")
        return response_details(response)
