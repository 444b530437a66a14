"""Tests for Miami-Dade ArcGIS ingestion."""

import httpx
import pytest

from arrestwatch.external.miami_dade import MiamiDadeIngestor, epoch_ms_to_iso, normalize_feature
from arrestwatch.output_manager import OutputManager

LAYER_URL = "https://services.arcgis.example/FeatureServer/0"


def feature(object_id: int, book_date: int = 1_700_000_000_000) -> dict:
    return {
        "attributes": {
            "ObjectId": object_id,
            "BookDate": book_date,
            "Defendant": f"DEFENDANT {object_id}",
            "ChargeCode": "784.03",
            "ChargeDesc": "BATTERY",
            "DOB": 631152000000,
            "Address": "1 MAIN ST",
            "CityStateZip": "MIAMI FL 33101",
            "CaseNum": f"C{object_id}",
        }
    }


class FakeLayer:
    """Serves latency and batch queries from a list of features."""

    def __init__(self, features: list[dict], fail_after_batches: int = None):
        self.features = features
        self.fail_after_batches = fail_after_batches
        self.batch_queries: list[str] = []

    def __call__(self, request: httpx.Request) -> httpx.Response:
        params = request.url.params
        if params["orderByFields"] == "BookDate DESC":
            newest = sorted(self.features, key=lambda f: f["attributes"]["BookDate"])[-1:]
            return httpx.Response(200, json={"features": newest})

        self.batch_queries.append(params["where"])
        if self.fail_after_batches is not None and len(self.batch_queries) > self.fail_after_batches:
            return httpx.Response(200, json={"error": {"code": 400, "message": "Invalid query"}})

        after = int(params["where"].split(">")[1])
        limit = int(params["resultRecordCount"])
        batch = [f for f in self.features if f["attributes"]["ObjectId"] > after][:limit]
        return httpx.Response(200, json={"features": batch})


class EndlessLayer:
    """Always has another batch after the requested ObjectId."""

    def __init__(self, on_batch=None):
        self.on_batch = on_batch
        self.batch_count = 0

    def __call__(self, request: httpx.Request) -> httpx.Response:
        params = request.url.params
        if params["orderByFields"] == "BookDate DESC":
            return httpx.Response(200, json={"features": [feature(1)]})

        self.batch_count += 1
        if self.on_batch is not None:
            self.on_batch(self.batch_count)
        after = int(params["where"].split(">")[1])
        limit = int(params["resultRecordCount"])
        return httpx.Response(
            200, json={"features": [feature(after + i) for i in range(1, limit + 1)]}
        )


def make_ingestor(tmp_path, layer, batch_size: int = 2):
    output = OutputManager(storage_dir=str(tmp_path), run_id="md")
    client = httpx.AsyncClient(transport=httpx.MockTransport(layer))
    ingestor = MiamiDadeIngestor(
        LAYER_URL, output, client=client, batch_size=batch_size, batch_delay=0
    )
    return ingestor, output, client


def test_epoch_ms_to_iso():
    """Epoch milliseconds become UTC ISO timestamps."""
    assert epoch_ms_to_iso(0) == "1970-01-01T00:00:00+00:00"
    assert epoch_ms_to_iso(None) is None


def test_normalize_feature():
    """Attributes map onto the common record shape."""
    record = normalize_feature(feature(7)["attributes"])
    assert record["source"] == "miami_dade_arcgis"
    assert record["source_id"] == 7
    assert record["person_name"] == "DEFENDANT 7"
    assert record["charges"] == ["784.03", "BATTERY"]
    assert record["facility"] == "Miami-Dade Waiting/Jail"
    assert record["details"]["case_number"] == "C7"
    assert record["details"]["raw"]["ObjectId"] == 7


class TestMiamiDadeIngestor:
    """Tests for MiamiDadeIngestor."""

    @pytest.mark.asyncio
    async def test_ingests_in_batches_and_saves_state(self, tmp_path):
        """All features are pushed and STATE holds the highest ObjectId."""
        layer = FakeLayer([feature(i) for i in range(1, 6)])
        ingestor, output, client = make_ingestor(tmp_path, layer)
        async with client:
            summary = await ingestor.run()

        assert summary["records_pushed"] == 5
        assert summary["last_object_id"] == 5
        assert output.key_value_store.get_value("STATE") == {"lastObjectId": 5}
        assert layer.batch_queries == ["ObjectId > -1", "ObjectId > 2", "ObjectId > 4", "ObjectId > 5"]
        assert [r["source_id"] for r in output.records()] == [1, 2, 3, 4, 5]

    @pytest.mark.asyncio
    async def test_resumes_from_state(self, tmp_path):
        """A stored high-water mark skips already ingested features."""
        layer = FakeLayer([feature(i) for i in range(1, 6)])
        ingestor, output, client = make_ingestor(tmp_path, layer, batch_size=10)
        output.key_value_store.set_value("STATE", {"lastObjectId": 3})
        async with client:
            summary = await ingestor.run()

        assert summary["records_pushed"] == 2
        assert layer.batch_queries[0] == "ObjectId > 3"

    @pytest.mark.asyncio
    async def test_latency_metric_stored(self, tmp_path):
        """The newest BookDate is recorded as LATENCY_METRIC."""
        layer = FakeLayer([feature(1, book_date=1_000), feature(2, book_date=2_000)])
        ingestor, output, client = make_ingestor(tmp_path, layer)
        async with client:
            metric = await ingestor.check_latency(client)

        assert metric["lastBookDate"] == 2_000
        assert metric["latencyMinutes"] > 0
        assert output.key_value_store.get_value("LATENCY_METRIC") == metric

    @pytest.mark.asyncio
    async def test_error_payload_stops_and_keeps_progress(self, tmp_path):
        """An ArcGIS error ends the run; completed batches stay recorded."""
        layer = FakeLayer([feature(i) for i in range(1, 6)], fail_after_batches=1)
        ingestor, output, client = make_ingestor(tmp_path, layer)
        async with client:
            summary = await ingestor.run()

        assert summary["records_pushed"] == 2
        assert output.key_value_store.get_value("STATE") == {"lastObjectId": 2}

    @pytest.mark.asyncio
    async def test_request_stop_ends_after_current_batch(self, tmp_path):
        """A stop request finishes the batch in hand and keeps its STATE."""
        layer = EndlessLayer()
        ingestor, output, client = make_ingestor(tmp_path, layer)
        layer.on_batch = lambda count: ingestor.request_stop() if count == 3 else None
        async with client:
            summary = await ingestor.run()

        assert layer.batch_count == 3
        assert summary["records_pushed"] == 6
        assert output.key_value_store.get_value("STATE") == {"lastObjectId": 5}

    @pytest.mark.asyncio
    async def test_batch_without_object_ids_stops(self, tmp_path):
        """A batch that does not move the high-water mark is not re-queried."""
        queries = []

        def handler(request: httpx.Request) -> httpx.Response:
            if request.url.params["orderByFields"] == "BookDate DESC":
                return httpx.Response(200, json={"features": []})
            queries.append(request.url.params["where"])
            return httpx.Response(200, json={"features": [{"attributes": {"Defendant": "A"}}]})

        ingestor, output, client = make_ingestor(tmp_path, handler)
        async with client:
            summary = await ingestor.run()

        assert queries == ["ObjectId > -1"]
        assert summary["records_pushed"] == 1
        assert summary["last_object_id"] == -1

    @pytest.mark.asyncio
    async def test_empty_layer(self, tmp_path):
        """No features means no latency metric and nothing pushed."""
        ingestor, output, client = make_ingestor(tmp_path, FakeLayer([]))
        async with client:
            summary = await ingestor.run()

        assert summary["latency"] is None
        assert summary["records_pushed"] == 0
        assert summary["last_object_id"] == -1
