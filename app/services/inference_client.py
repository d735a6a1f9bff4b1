"""
Client for the hosted inference provider (fal.ai)

Synchronous models are called on the run endpoint and answer with the result
in the same response. Queue models return a request id that has to be polled.
"""
import asyncio
import logging
from dataclasses import dataclass
from typing import Any, Dict, Optional
import httpx

logger = logging.getLogger(__name__)


class InferenceError(Exception):
    """Generic provider failure"""
    pass


class InferenceTimeout(InferenceError):
    """Provider did not answer within the timeout"""
    pass


class InferenceRateLimit(InferenceError):
    """Provider rate limit (429)"""
    pass


class InferenceUnauthorized(InferenceError):
    """Provider rejected our credentials (401/403)"""
    pass


class InferenceJobFailed(InferenceError):
    """Queued job finished with FAILED"""
    pass


class InferenceJobTimeout(InferenceError):
    """Polling gave up before the job finished"""
    pass


class InferenceJobCancelled(InferenceError):
    """Polling was cancelled by the caller"""
    pass


@dataclass
class JobStatus:
    status: str  # IN_QUEUE | IN_PROGRESS | COMPLETED | FAILED
    error: Optional[str] = None
    progress: Optional[float] = None

    @property
    def is_completed(self) -> bool:
        return self.status == "COMPLETED"

    @property
    def is_failed(self) -> bool:
        return self.status in ("FAILED", "ERROR", "CANCELLED")


def extract_output_url(result: Dict[str, Any]) -> Optional[str]:
    """Finds the output URL in the shapes returned by image and video models."""
    for field in ("image", "video"):
        value = result.get(field)
        if isinstance(value, dict) and value.get("url"):
            return value["url"]
    images = result.get("images")
    if isinstance(images, list) and images and isinstance(images[0], dict):
        return images[0].get("url")
    return result.get("video_url") or result.get("image_url")


class InferenceClient:
    """
    Async client for the inference provider. One instance is created at
    startup and shared by all requests.
    """

    def __init__(
        self,
        api_key: Optional[str],
        run_url: str = "https://fal.run",
        queue_url: str = "https://queue.fal.run",
        timeout: float = 60,
        max_retries: int = 3,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.api_key = api_key
        self.run_url = run_url.rstrip("/")
        self.queue_url = queue_url.rstrip("/")
        self.timeout = timeout
        self.max_retries = max_retries
        self._client = httpx.AsyncClient(timeout=timeout, transport=transport)

    def _get_headers(self) -> Dict[str, str]:
        if not self.api_key:
            raise InferenceError("Inference provider not configured. Set FAL_API_KEY")
        return {
            "Authorization": f"Key {self.api_key}",
            "Content-Type": "application/json",
        }

    async def _make_request(
        self,
        method: str,
        url: str,
        data: Optional[Dict[str, Any]] = None,
    ) -> httpx.Response:
        """
        Sends a request with exponential backoff on 5xx and network errors.
        """
        headers = self._get_headers()
        backoff = 1

        for attempt in range(self.max_retries):
            try:
                response = await self._client.request(method, url, headers=headers, json=data)
            except httpx.TimeoutException:
                if attempt < self.max_retries - 1:
                    wait_time = backoff * (2 ** attempt)
                    logger.warning(f"Timeout, retrying in {wait_time}s (attempt {attempt + 1}/{self.max_retries})")
                    await asyncio.sleep(wait_time)
                    continue
                logger.error("inference_fail: Timeout after retries")
                raise InferenceTimeout(f"Inference request timed out after {self.timeout}s")
            except httpx.RequestError as e:
                if attempt < self.max_retries - 1:
                    wait_time = backoff * (2 ** attempt)
                    logger.warning(f"Request error, retrying in {wait_time}s (attempt {attempt + 1}/{self.max_retries}): {e}")
                    await asyncio.sleep(wait_time)
                    continue
                logger.error(f"inference_fail: {e}")
                raise InferenceError(f"Inference request failed: {e}")

            if response.status_code in (401, 403):
                logger.error(f"inference_fail: Unauthorized ({response.status_code})")
                raise InferenceUnauthorized("Inference provider rejected credentials")

            if response.status_code == 429:
                logger.error("inference_fail: Rate limit (429)")
                raise InferenceRateLimit("Inference provider rate limit exceeded")

            if response.status_code >= 500:
                if attempt < self.max_retries - 1:
                    wait_time = backoff * (2 ** attempt)
                    logger.warning(
                        f"Server error {response.status_code}, retrying in {wait_time}s "
                        f"(attempt {attempt + 1}/{self.max_retries})"
                    )
                    await asyncio.sleep(wait_time)
                    continue
                logger.error(f"inference_fail: Server error {response.status_code}")
                raise InferenceError(f"Inference provider error: {response.status_code}")

            if response.status_code >= 400:
                raise InferenceError(f"Inference request rejected ({response.status_code}): {response.text[:200]}")

            return response

        raise InferenceError("Inference request failed after all retries")

    async def run(self, endpoint: str, payload: Dict[str, Any]) -> Dict[str, Any]:
        """Calls a synchronous model and returns its JSON result."""
        logger.info(f"Running model: {endpoint}")
        response = await self._make_request("POST", f"{self.run_url}/{endpoint}", payload)
        return response.json()

    async def run_for_url(self, endpoint: str, payload: Dict[str, Any]) -> str:
        result = await self.run(endpoint, payload)
        url = extract_output_url(result)
        if not url:
            raise InferenceError(f"No output URL in {endpoint} response")
        return url

    async def submit(self, endpoint: str, payload: Dict[str, Any]) -> str:
        """Queues a job and returns the provider's request id."""
        response = await self._make_request("POST", f"{self.queue_url}/{endpoint}", payload)
        request_id = response.json().get("request_id")
        if not request_id:
            raise InferenceError(f"No request id in {endpoint} queue response")
        logger.info(f"Job submitted: endpoint={endpoint}, request_id={request_id}")
        return request_id

    async def status(self, endpoint: str, request_id: str) -> JobStatus:
        response = await self._make_request(
            "GET", f"{self.queue_url}/{endpoint}/requests/{request_id}/status"
        )
        data = response.json()
        return JobStatus(
            status=(data.get("status") or "IN_PROGRESS").upper(),
            error=data.get("error"),
            progress=data.get("progress"),
        )

    async def result(self, endpoint: str, request_id: str) -> Dict[str, Any]:
        response = await self._make_request(
            "GET", f"{self.queue_url}/{endpoint}/requests/{request_id}"
        )
        return response.json()

    async def download(self, url: str) -> bytes:
        """Fetches result bytes. Output URLs are public, no auth header is sent."""
        try:
            response = await self._client.get(url, follow_redirects=True)
        except httpx.TimeoutException:
            raise InferenceTimeout(f"Download timed out: {url}")
        except httpx.RequestError as e:
            raise InferenceError(f"Failed to download result: {e}")

        if response.status_code != 200:
            raise InferenceError(f"Failed to download result: HTTP {response.status_code}")
        return response.content

    async def aclose(self):
        await self._client.aclose()
