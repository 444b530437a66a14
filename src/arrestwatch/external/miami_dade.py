"""
Miami-Dade booking ingestion from an ArcGIS FeatureServer.

The county publishes bookings as a feature layer, so no browser is
needed. Ingestion is incremental: the highest ObjectId seen is stored as
STATE in the key-value store after every batch, and the next run resumes
after it.

Query API: https://developers.arcgis.com/rest/services-reference/enterprise/query-feature-service-layer/
"""

import asyncio
import logging
import time
from datetime import datetime, timezone
from typing import Any, Optional

import httpx

from arrestwatch.constants import (
    ARCGIS_BATCH_DELAY_SECONDS,
    ARCGIS_BATCH_SIZE,
    ARCGIS_TIMEOUT_SECONDS,
    LATENCY_METRIC_KEY,
    MIAMI_DADE_FACILITY,
    MIAMI_DADE_SOURCE,
    STATE_KEY,
)
from arrestwatch.errors import ArcGISError
from arrestwatch.output_manager import OutputManager

logger = logging.getLogger(__name__)


def epoch_ms_to_iso(value: Optional[int]) -> Optional[str]:
    """ArcGIS date fields are epoch milliseconds (UTC)."""
    if value is None:
        return None
    return datetime.fromtimestamp(value / 1000, tz=timezone.utc).isoformat()


def normalize_feature(attrs: dict[str, Any], scraped_at: Optional[datetime] = None) -> dict[str, Any]:
    """Map one feature's attributes to the common record shape."""
    scraped_at = scraped_at or datetime.now(timezone.utc)
    return {
        "source": MIAMI_DADE_SOURCE,
        "source_id": attrs.get("ObjectId"),
        "booking_datetime": epoch_ms_to_iso(attrs.get("BookDate")),
        "person_name": attrs.get("Defendant"),
        "charges": [c for c in (attrs.get("ChargeCode"), attrs.get("ChargeDesc")) if c],
        "facility": MIAMI_DADE_FACILITY,
        "details": {
            "dob": epoch_ms_to_iso(attrs.get("DOB")),
            "address": attrs.get("Address"),
            "location": attrs.get("CityStateZip"),
            "case_number": attrs.get("CaseNum"),
            "raw": attrs,
        },
        "scraped_at": scraped_at.isoformat(),
    }


class MiamiDadeIngestor:
    """
    Incremental ingestion of the Miami-Dade bookings feature layer.

    Usage:
        ingestor = MiamiDadeIngestor(arcgis_url, output_manager)
        summary = await ingestor.run()
    """

    def __init__(
        self,
        arcgis_url: str,
        output: OutputManager,
        client: Optional[httpx.AsyncClient] = None,
        batch_size: int = ARCGIS_BATCH_SIZE,
        batch_delay: float = ARCGIS_BATCH_DELAY_SECONDS,
        timeout: float = ARCGIS_TIMEOUT_SECONDS,
    ):
        """
        Initialize ingestor.

        Args:
            arcgis_url: FeatureServer layer URL (without /query)
            output: Output manager receiving records and state
            client: HTTP client to use; one is created for the run if omitted
            batch_size: Features requested per query
            batch_delay: Pause between batches (seconds)
            timeout: HTTP timeout (seconds)
        """
        self.arcgis_url = arcgis_url.rstrip("/")
        self.output = output
        self.batch_size = batch_size
        self.batch_delay = batch_delay
        self.timeout = timeout
        self._client = client
        self._stop_requested = False

    def request_stop(self) -> None:
        """Finish the current batch, then stop; STATE keeps the progress made."""
        if not self._stop_requested:
            logger.warning("Stop requested, ending ingestion after the current batch")
        self._stop_requested = True

    @property
    def query_url(self) -> str:
        return f"{self.arcgis_url}/query"

    async def _query(self, client: httpx.AsyncClient, params: dict[str, str]) -> dict[str, Any]:
        response = await client.get(self.query_url, params=params)
        response.raise_for_status()
        data = response.json()
        if data.get("error"):
            error = data["error"]
            raise ArcGISError(error.get("message", "unknown error"), code=error.get("code"))
        return data

    async def check_latency(self, client: httpx.AsyncClient) -> Optional[dict[str, Any]]:
        """
        Record how far behind the newest booking is.

        Returns:
            The LATENCY_METRIC value, or None when unavailable
        """
        params = {
            "where": "1=1",
            "orderByFields": "BookDate DESC",
            "resultRecordCount": "1",
            "outFields": "BookDate,ObjectId",
            "f": "json",
            "returnGeometry": "false",
        }

        logger.info("Checking latency...")
        try:
            data = await self._query(client, params)
        except (httpx.HTTPError, ArcGISError, ValueError) as e:
            logger.error(f"Latency check failed: {e}")
            return None

        features = data.get("features") or []
        if not features:
            logger.warning("Latency Check: No records found.")
            return None

        book_date = features[0].get("attributes", {}).get("BookDate")
        if book_date is None:
            logger.warning("Latency Check: newest record has no BookDate.")
            return None

        latency_minutes = round((time.time() * 1000 - book_date) / 60000)
        metric = {"latencyMinutes": latency_minutes, "lastBookDate": book_date}
        self.output.key_value_store.set_value(LATENCY_METRIC_KEY, metric)
        logger.info(f"Latest Booking: {epoch_ms_to_iso(book_date)} (Latency: {latency_minutes}m)")
        return metric

    def load_last_object_id(self) -> int:
        state = self.output.key_value_store.get_value(STATE_KEY) or {}
        return int(state.get("lastObjectId", -1))

    async def ingest(self, client: httpx.AsyncClient) -> int:
        """
        Fetch batches after the stored high-water mark until none remain.

        Returns:
            Number of records pushed
        """
        last_object_id = self.load_last_object_id()
        logger.info(f"Resuming ingestion from ObjectId > {last_object_id}")

        pushed = 0
        while not self._stop_requested:
            batch_start = last_object_id
            params = {
                "where": f"ObjectId > {last_object_id}",
                "orderByFields": "ObjectId ASC",
                "resultRecordCount": str(self.batch_size),
                "outFields": "*",
                "f": "json",
                "returnGeometry": "false",
            }

            try:
                data = await self._query(client, params)
            except (httpx.HTTPError, ArcGISError, ValueError) as e:
                logger.error(f"Ingestion batch failed: {e}")
                break

            features = data.get("features") or []
            if not features:
                logger.info("No more records found.")
                break

            logger.info(f"Processing {len(features)} records...")
            for feature in features:
                attrs = feature.get("attributes", {})
                self.output.push_record(normalize_feature(attrs))
                pushed += 1

                object_id = attrs.get("ObjectId")
                if object_id is not None and object_id > last_object_id:
                    last_object_id = object_id

            self.output.key_value_store.set_value(STATE_KEY, {"lastObjectId": last_object_id})

            # The next query would repeat this one
            if last_object_id == batch_start:
                logger.error(
                    f"Batch did not advance past ObjectId {last_object_id}; stopping ingestion"
                )
                break

            if self.batch_delay > 0 and not self._stop_requested:
                await asyncio.sleep(self.batch_delay)

        if self._stop_requested:
            logger.info(f"Ingestion stopped at ObjectId {last_object_id}")
        return pushed

    async def run(self) -> dict[str, Any]:
        """Latency check followed by incremental ingestion."""
        logger.info(f"Starting Miami-Dade ArcGIS Scraper ({self.arcgis_url})")

        if self._client is not None:
            latency = await self.check_latency(self._client)
            pushed = await self.ingest(self._client)
        else:
            async with httpx.AsyncClient(timeout=self.timeout) as client:
                latency = await self.check_latency(client)
                pushed = await self.ingest(client)

        logger.info("Miami-Dade Ingestion Complete.")
        return {
            "source": MIAMI_DADE_SOURCE,
            "records_pushed": pushed,
            "last_object_id": self.load_last_object_id(),
            "latency": latency,
        }
