import httpx
from typing import Dict, Any, Optional, Tuple
from loguru import logger
from config import Settings
from tools.calendly import response_details


class ForwardError(Exception):
    """Raised when a lead could not be delivered to TeleForce."""

    def __init__(self, message: str, status_code: Optional[int] = None, details: Any = None):
        super().__init__(message)
        self.status_code = status_code
        self.details = details


class TeleForceClient:
    """TeleForce lead-intake client."""

    def __init__(self, settings: Settings):
        self.api_url = settings.teleforce_api_url
        self.timeout = settings.teleforce_timeout

    async def send_lead(self, lead: Dict[str, Any]) -> Tuple[int, Any]:
        """
        POST a lead payload to TeleForce. Single attempt, no retry.

        Returns:
            (status code, response body)
        """
        if not self.api_url:
            raise ForwardError("TeleForce API URL not configured")

        try:
            async with httpx.AsyncClient(timeout=self.timeout) as client:
                response = await client.post(
                    self.api_url,
                    json=lead,
                    headers={"Content-Type": "application/json"}
                )
                response.raise_for_status()
        except httpx.HTTPStatusError as e:
            details = response_details(e.response)
            logger.error(f"TeleForce rejected lead with {e.response.status_code}: {details}")
            raise ForwardError(
                f"TeleForce responded with status {e.response.status_code}",
                e.response.status_code,
                details,
            ) from e
        except httpx.TimeoutException as e:
            logger.error(f"TeleForce request timed out after {self.timeout}s")
            raise ForwardError(f"TeleForce request timed out after {self.timeout}s") from e
        except httpx.HTTPError as e:
            logger.error(f"TeleForce request failed: {e}")
            raise ForwardError(f"TeleForce request failed: {e}") from e

        return response.status_code, response_details(response)
