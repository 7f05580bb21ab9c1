import logging
from datetime import datetime, timedelta, timezone
from typing import Optional
import httpx

from app.errors import ConnectivityError, TransientFetchError
from app.schemas.activity import to_iso

logger = logging.getLogger(__name__)


class ActivitySource:
    """Queries the screen/audio capture service for activity in a time range."""

    def __init__(self, base_url: str, timeout: float = 10.0):
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout

    async def query(
        self,
        content_type: str,
        start_time: datetime,
        end_time: datetime,
        limit: Optional[int] = None,
    ) -> list[dict]:
        """Return the raw `data` items for the range, raising TransientFetchError on failure."""
        params = {
            "content_type": content_type,
            "start_time": to_iso(start_time),
            "end_time": to_iso(end_time),
        }
        if limit is not None:
            params["limit"] = limit

        try:
            async with httpx.AsyncClient(timeout=self.timeout) as client:
                response = await client.get(f"{self.base_url}/search", params=params)
                response.raise_for_status()
                body = response.json()
        except (httpx.HTTPError, ValueError) as e:
            raise TransientFetchError(f"Activity query failed: {e}") from e

        data = body.get("data") if isinstance(body, dict) else None
        if not isinstance(data, list):
            return []
        return data

    async def probe(self) -> None:
        """Make a tiny query so start-up fails fast when the service is down."""
        now = datetime.now(timezone.utc)
        try:
            await self.query("ocr", now - timedelta(seconds=10), now, limit=1)
        except TransientFetchError as e:
            logger.error("Failed to connect to activity source at %s: %s", self.base_url, e)
            raise ConnectivityError(
                "Cannot connect to the activity capture service. Is it running?"
            ) from e
        logger.info("Activity source reachable at %s", self.base_url)
