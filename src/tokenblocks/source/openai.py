import asyncio
from datetime import datetime, timezone

import httpx
import structlog

from tokenblocks.models import UsageRecord
from tokenblocks.pricing import estimate_cost

logger = structlog.get_logger()

OPENAI_BASE_URL = "https://api.openai.com/v1/organization"

# each tuple is (url_path, group_by), only token-billed endpoints
USAGE_ENDPOINTS: "list[tuple[str, str]]" = [
    ("completions", "project_id,api_key_id,model"),
    ("embeddings", "project_id,api_key_id,model"),
]


class OpenAIUsageSource:
    """
    OpenAIUsageSource implements the RecordSource protocol on top of
    OpenAI's organization usage API. Every result of a one-minute
    usage bucket becomes one record stamped at the bucket start, its
    cost estimated from the model price table.
    """

    def __init__(self, api_key: "str", org_id: "str" = "") -> "None":
        headers: "dict[str, str]" = {"Authorization": f"Bearer {api_key}"}
        if org_id:
            headers["OpenAI-Organization"] = org_id
        self._client: "httpx.AsyncClient" = httpx.AsyncClient(
            timeout=10.0,
            headers=headers,
        )

    @property
    def name(self) -> "str":
        return "openai"

    async def close(self) -> "None":
        await self._client.aclose()

    async def fetch_records(
        self,
        start_time: "datetime",
        end_time: "datetime",
    ) -> "list[UsageRecord]":
        """
        fetches usage from all endpoints concurrently. An endpoint
        that fails is logged and left out.
        """
        start = int(start_time.timestamp())
        end = int(end_time.timestamp())
        tasks = [
            self._fetch_endpoint(path, group_by, start, end)
            for path, group_by in USAGE_ENDPOINTS
        ]

        results = await asyncio.gather(*tasks, return_exceptions=True)
        records: "list[UsageRecord]" = []

        for (path, _), result in zip(USAGE_ENDPOINTS, results):
            if isinstance(result, BaseException):
                logger.error("openai_usage_endpoint_error", endpoint=path, error=str(result))
                continue

            records.extend(result)

        return records

    async def _fetch_endpoint(
        self,
        path: "str",
        group_by: "str",
        start_time: "int",
        end_time: "int",
    ) -> "list[UsageRecord]":
        """
        fetches usage for one endpoint, following pagination.
        """
        records: "list[UsageRecord]" = []
        next_page = ""

        while True:
            url = (
                f"{OPENAI_BASE_URL}/usage/{path}"
                f"?start_time={start_time}&end_time={end_time}"
                f"&bucket_width=1m&limit=1440"
                f"&group_by={group_by}"
            )
            if next_page:
                url += f"&page={next_page}"

            logger.debug("openai_fetch_usage", url=url)
            resp = await self._client.get(url)

            # keys without usage read access get a 403,
            # which means no data rather than a failure
            if resp.status_code == 403:
                logger.debug("openai_endpoint_forbidden", endpoint=path)
                return records
            resp.raise_for_status()

            data = resp.json()

            for bucket in data.get("data", []):
                timestamp = datetime.fromtimestamp(
                    bucket["start_time"], tz=timezone.utc
                ).astimezone()
                for result in bucket.get("results", []):
                    records.append(self._to_record(result, timestamp))

            if not data.get("has_more"):
                break

            next_page = data.get("next_page", "")

        logger.debug("openai_usage_endpoint_done", endpoint=path, record_count=len(records))
        return records

    @staticmethod
    def _to_record(result: "dict[str, object]", timestamp: "datetime") -> "UsageRecord":
        model = str(result.get("model") or "unknown")
        prompt_tokens = int(result.get("input_tokens", 0))
        completion_tokens = int(result.get("output_tokens", 0))

        return UsageRecord(
            timestamp=timestamp,
            model=model,
            prompt_tokens=prompt_tokens,
            completion_tokens=completion_tokens,
            total_tokens=prompt_tokens + completion_tokens,
            cost=estimate_cost(model, prompt_tokens, completion_tokens),
            session_id=str(result.get("project_id") or "unknown"),
            request_count=int(result.get("num_model_requests", 0)),
        )
