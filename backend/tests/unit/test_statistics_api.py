"""Unit tests for the statistics API client."""
import httpx
import pytest

from seller_analytics.models.schemas import CacheKind
from seller_analytics.services.statistics_api import StatisticsApiService, UpstreamFetchError


def make_service(handler, max_retries: int = 2) -> StatisticsApiService:
    client = httpx.AsyncClient(transport=httpx.MockTransport(handler))
    return StatisticsApiService(
        api_key="test-token",
        http_client=client,
        max_retries=max_retries,
        backoff_seconds=0.0,
    )


class TestFetchReportDetail:
    """Tests for paginated report fetching."""

    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_walks_pages_by_rrd_id(self):
        pages = {
            "0": [{"rrd_id": 1, "nm_id": 10}, {"rrd_id": 2, "nm_id": 11}],
            "2": [{"rrd_id": 3, "nm_id": 12}],
            "3": [],
        }
        seen = []

        def handler(request: httpx.Request) -> httpx.Response:
            assert request.headers["Authorization"] == "test-token"
            assert request.url.path.endswith("/supplier/reportDetailByPeriod")
            rrdid = request.url.params["rrdid"]
            seen.append(rrdid)
            return httpx.Response(200, json=pages[rrdid])

        service = make_service(handler)
        records = await service.fetch_report_detail("2024-03-01", "2024-03-07")

        assert [r["nm_id"] for r in records] == [10, 11, 12]
        assert seen == ["0", "2", "3"]

    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_null_body_is_an_empty_report(self):
        service = make_service(lambda request: httpx.Response(200, content=b"null"))
        assert await service.fetch_report_detail("2024-03-01", "2024-03-07") == []

    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_unexpected_payload_raises(self):
        service = make_service(lambda request: httpx.Response(200, json={"errors": ["bad"]}))
        with pytest.raises(UpstreamFetchError, match="Unexpected report payload"):
            await service.fetch_report_page("2024-03-01", "2024-03-07")


class TestRetries:
    """Tests for retry behaviour."""

    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_retries_rate_limited_request(self):
        responses = [httpx.Response(429), httpx.Response(200, json=[])]
        calls = []

        def handler(request):
            calls.append(request)
            return responses[len(calls) - 1]

        service = make_service(handler)
        assert await service.fetch_report_page("2024-03-01", "2024-03-07") == []
        assert len(calls) == 2

    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_raises_after_retries_exhausted(self):
        calls = []

        def handler(request):
            calls.append(request)
            return httpx.Response(503)

        service = make_service(handler, max_retries=2)
        with pytest.raises(UpstreamFetchError) as exc_info:
            await service.fetch_report_page("2024-03-01", "2024-03-07")

        assert exc_info.value.status_code == 503
        assert len(calls) == 2

    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_client_error_is_not_retried(self):
        calls = []

        def handler(request):
            calls.append(request)
            return httpx.Response(401)

        service = make_service(handler)
        with pytest.raises(UpstreamFetchError) as exc_info:
            await service.fetch_report_page("2024-03-01", "2024-03-07")

        assert exc_info.value.status_code == 401
        assert len(calls) == 1

    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_transport_error_is_retried(self):
        calls = []

        def handler(request):
            calls.append(request)
            if len(calls) == 1:
                raise httpx.ConnectError("connection refused", request=request)
            return httpx.Response(200, json=[])

        service = make_service(handler)
        assert await service.fetch_report_page("2024-03-01", "2024-03-07") == []
        assert len(calls) == 2


class TestReportFetcher:
    """Tests for report_fetcher integration with the cache."""

    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_report_fetcher_feeds_cached_fetcher(self, cached_fetcher):
        calls = []

        def handler(request):
            calls.append(request)
            if request.url.params["rrdid"] == "0":
                return httpx.Response(200, json=[{"rrd_id": 5, "nm_id": 1}])
            return httpx.Response(200, json=[])

        service = make_service(handler)
        fetch = service.report_fetcher("2024-03-01", "2024-03-07")

        first = await cached_fetcher.fetch_with_cache(CacheKind.SALES, "s", None, fetch)
        second = await cached_fetcher.fetch_with_cache(CacheKind.SALES, "s", None, fetch)

        assert first == second == [{"rrd_id": 5, "nm_id": 1}]
        assert len(calls) == 2  # two pages, fetched once

    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_upstream_failure_reaches_cache_caller(self, cached_fetcher, cache_store):
        service = make_service(lambda request: httpx.Response(500), max_retries=1)
        fetch = service.report_fetcher("2024-03-01", "2024-03-07")

        with pytest.raises(UpstreamFetchError):
            await cached_fetcher.fetch_with_cache(CacheKind.SALES, "s", None, fetch)

        assert cache_store.get(CacheKind.SALES, "s") is None
