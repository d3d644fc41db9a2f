"""Download an article page and extract its readable body."""

import asyncio
from dataclasses import dataclass

import httpx

from rss_reader_service.config import settings
from rss_reader_service.logging_config import get_logger

from .exceptions import ContentTooLargeError, FetchTimeoutError, NetworkError
from .html_extractor import ExtractionResult, HTMLExtractor

logger = get_logger(__name__)


@dataclass
class PipelineConfig:
    """Fetch limits for article pages.

    Attributes:
        timeout_seconds: Per-request timeout
        max_retries: Attempts for timeouts, connection errors and 5xx
        retry_delay_seconds: Base delay, doubled after each attempt
        max_content_size_mb: Largest page accepted
        user_agent: User-Agent header sent to publishers
    """

    timeout_seconds: float = 10.0
    max_retries: int = 2
    retry_delay_seconds: float = 1.0
    max_content_size_mb: int = 10
    user_agent: str = "Mozilla/5.0 (compatible; RSS Reader Bot/1.0)"

    @property
    def max_content_size_bytes(self) -> int:
        return self.max_content_size_mb * 1024 * 1024

    @classmethod
    def from_settings(cls) -> "PipelineConfig":
        return cls(
            timeout_seconds=settings.content_fetch_timeout_seconds,
            max_retries=settings.content_fetch_max_retries,
            retry_delay_seconds=settings.content_fetch_retry_delay_seconds,
            max_content_size_mb=settings.content_fetch_max_size_mb,
            user_agent=settings.content_fetch_user_agent,
        )


class ExtractionPipeline:
    """Fetch a URL with retries, then run the HTML extractor.

    Design Decisions:

    1. Retry policy:
       - Timeouts, connection errors and 5xx responses are retried with
         exponential backoff; 4xx responses fail immediately
       - When every attempt timed out, FetchTimeoutError is raised so the
         API can answer 408 instead of 500

    2. One client per extraction:
       - Manual fetches are rare and user-triggered; a short-lived client
         keeps the pipeline free of shutdown hooks
    """

    def __init__(
        self,
        config: PipelineConfig | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self.config = config or PipelineConfig.from_settings()
        self._transport = transport
        self._html_extractor = HTMLExtractor()

    async def extract(self, url: str) -> ExtractionResult:
        """Extract the readable article at ``url``.

        Raises:
            FetchTimeoutError: If every attempt timed out
            NetworkError: If the page could not be downloaded
            ContentTooLargeError: If the page exceeds the size limit
            EmptyContentError: If no article text was found
        """
        async with httpx.AsyncClient(
            timeout=self.config.timeout_seconds,
            follow_redirects=True,
            headers={"User-Agent": self.config.user_agent},
            transport=self._transport,
        ) as client:
            content, final_url = await self._fetch_with_retry(client, url)

        result = self._html_extractor.extract(content, final_url)
        logger.info(
            "article_extracted",
            url=final_url,
            text_length=result.text_length,
            extraction_time_ms=round(result.extraction_time_ms, 1),
        )
        return result

    async def _fetch_with_retry(
        self,
        client: httpx.AsyncClient,
        url: str,
    ) -> tuple[bytes, str]:
        """Download ``url``.

        Returns:
            Tuple of (content bytes, final URL after redirects)
        """
        last_error: NetworkError | None = None

        for attempt in range(self.config.max_retries):
            try:
                response = await client.get(url)
                response.raise_for_status()
            except httpx.TimeoutException as e:
                last_error = FetchTimeoutError(f"Timeout fetching {url}: {e}")
            except httpx.HTTPStatusError as e:
                code = e.response.status_code
                if code < 500:
                    raise NetworkError(
                        f"Failed to fetch article: {code} {e.response.reason_phrase}"
                    ) from e
                last_error = NetworkError(
                    f"Failed to fetch article: {code} {e.response.reason_phrase}"
                )
            except httpx.RequestError as e:
                last_error = NetworkError(f"Request error fetching {url}: {e}")
            else:
                if len(response.content) > self.config.max_content_size_bytes:
                    raise ContentTooLargeError(
                        f"Content size {len(response.content)} exceeds limit "
                        f"{self.config.max_content_size_bytes}"
                    )
                return response.content, str(response.url)

            logger.warning(
                "article_fetch_retry", url=url, attempt=attempt + 1, error=str(last_error)
            )
            if attempt < self.config.max_retries - 1:
                await asyncio.sleep(self.config.retry_delay_seconds * 2**attempt)

        raise last_error or NetworkError(f"Failed to fetch {url}")


def get_extraction_pipeline() -> ExtractionPipeline:
    """FastAPI dependency; tests override it with a pipeline on a mock transport."""
    return ExtractionPipeline()
