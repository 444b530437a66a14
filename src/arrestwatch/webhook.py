"""
Completion webhook.

Posts the records of a finished run to a configured URL. Delivery is best
effort: failures are logged and never fail the run.
"""

import logging
from typing import Any, Optional

import httpx

logger = logging.getLogger(__name__)


class WebhookNotifier:
    """Sends ``{source, county, runId, records}`` to a webhook URL."""

    TIMEOUT_SECONDS = 30.0

    def __init__(
        self,
        url: str,
        auth_token: Optional[str] = None,
        client: Optional[httpx.AsyncClient] = None,
    ):
        """
        Initialize notifier.

        Args:
            url: Webhook endpoint
            auth_token: Sent as a Bearer token when set
            client: HTTP client to use; one is created per send if omitted
        """
        self.url = url
        self.auth_token = auth_token
        self._client = client

    def build_headers(self) -> dict[str, str]:
        headers = {"Content-Type": "application/json"}
        if self.auth_token:
            headers["Authorization"] = f"Bearer {self.auth_token}"
        return headers

    @staticmethod
    def build_payload(
        source: str,
        county: Optional[int],
        run_id: str,
        records: list[dict[str, Any]],
    ) -> dict[str, Any]:
        return {
            "source": source,
            "county": county,
            "runId": run_id,
            "records": records,
        }

    async def send(
        self,
        source: str,
        county: Optional[int],
        run_id: str,
        records: list[dict[str, Any]],
    ) -> bool:
        """
        POST the run's records.

        Returns:
            True if the endpoint accepted the payload
        """
        payload = self.build_payload(source, county, run_id, records)

        try:
            if self._client is not None:
                response = await self._client.post(
                    self.url, json=payload, headers=self.build_headers()
                )
            else:
                async with httpx.AsyncClient(timeout=self.TIMEOUT_SECONDS) as client:
                    response = await client.post(
                        self.url, json=payload, headers=self.build_headers()
                    )
            response.raise_for_status()

        except httpx.TimeoutException:
            logger.error(f"Webhook failed: timeout posting to {self.url}")
            return False

        except httpx.HTTPStatusError as e:
            logger.error(f"Webhook failed: HTTP {e.response.status_code} from {self.url}")
            return False

        except httpx.HTTPError as e:
            logger.error(f"Webhook failed: {e}")
            return False

        except httpx.InvalidURL as e:
            logger.error(f"Webhook failed: invalid URL {self.url!r}: {e}")
            return False

        logger.info(f"Webhook sent successfully ({len(records)} records).")
        return True
