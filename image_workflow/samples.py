"""Fixed gallery of preset sample images."""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass
from typing import Awaitable, Callable, Dict, Iterable, List, Optional, Tuple

import httpx

from .assets import ImageAsset
from .exceptions import ImageWorkflowError, InvalidInputError, ServiceError

logger = logging.getLogger(__name__)

# Returns (body, content type) for a URL.
Fetcher = Callable[[str], Awaitable[Tuple[bytes, Optional[str]]]]


@dataclass(frozen=True)
class Sample:
    sample_id: str
    title: str
    url: str

    def to_dict(self) -> dict:
        return {"sample_id": self.sample_id, "title": self.title, "url": self.url}


DEFAULT_SAMPLES: Tuple[Sample, ...] = (
    Sample(
        sample_id="sample-1",
        title="Sample 1",
        url="https://images.unsplash.com/photo-1517849845537-4d257902454a?q=80&w=1935&auto=format&fit=crop",
    ),
    Sample(
        sample_id="sample-2",
        title="Sample 2",
        url="https://images.unsplash.com/photo-1503023345310-bd7c1de61c7d?q=80&w=1965&auto=format&fit=crop",
    ),
    Sample(
        sample_id="sample-3",
        title="Sample 3",
        url="https://images.unsplash.com/photo-1534528741702-a0c49e587007?q=80&w=1964&auto=format&fit=crop",
    ),
)


class SampleGallery:
    """Serves preset images as fresh assets, fetching each one at most once."""

    def __init__(
        self,
        samples: Iterable[Sample] = DEFAULT_SAMPLES,
        fetcher: Fetcher | None = None,
        timeout: float = 30.0,
    ) -> None:
        self._samples: Dict[str, Sample] = {sample.sample_id: sample for sample in samples}
        self._cache: Dict[str, ImageAsset] = {}
        self._timeout = timeout
        self._client: Optional[httpx.AsyncClient] = None
        self._fetcher = fetcher or self._http_fetch

    @property
    def samples(self) -> List[Sample]:
        return list(self._samples.values())

    def is_cached(self, sample_id: str) -> bool:
        return sample_id in self._cache

    async def prefetch(self) -> None:
        """Fetch every sample up front; failures are logged and retried on selection."""

        async def _fetch(sample: Sample) -> None:
            try:
                await self._load(sample)
            except ImageWorkflowError:
                logger.warning("Could not prefetch sample '%s'", sample.sample_id, exc_info=True)

        await asyncio.gather(*(_fetch(sample) for sample in self._samples.values()))

    async def select(self, sample_id: str) -> ImageAsset:
        """Return a new asset for ``sample_id``.

        Raises
        ------
        InvalidInputError
            If the sample id is unknown.
        ServiceError
            If the sample could not be fetched.
        """

        sample = self._samples.get(sample_id)
        if sample is None:
            raise InvalidInputError(f"Unknown sample '{sample_id}'")
        asset = self._cache.get(sample_id) or await self._load(sample)
        return asset.renewed()

    async def aclose(self) -> None:
        if self._client is not None:
            await self._client.aclose()
            self._client = None

    async def _load(self, sample: Sample) -> ImageAsset:
        try:
            data, content_type = await self._fetcher(sample.url)
        except Exception as exc:
            raise ServiceError(f"Could not fetch sample '{sample.sample_id}'") from exc

        try:
            asset = ImageAsset.from_bytes(data, media_type=content_type, filename=sample.sample_id)
        except InvalidInputError as exc:
            raise ServiceError(f"Sample '{sample.sample_id}' is not a valid image") from exc

        self._cache[sample.sample_id] = asset
        logger.info("Cached sample '%s' (%d bytes)", sample.sample_id, asset.size_bytes)
        return asset

    async def _http_fetch(self, url: str) -> Tuple[bytes, Optional[str]]:
        if self._client is None:
            self._client = httpx.AsyncClient(timeout=self._timeout, follow_redirects=True)
        response = await self._client.get(url)
        response.raise_for_status()
        return response.content, response.headers.get("content-type")
