"""External job client: submit, wait, poll, fetch.

Long-running provider jobs follow one state machine::

    SUBMIT(payload)          -> job id, polling handle, cost estimate
    WAIT(initial delay)      always once before the first poll
    POLL(handle)
        Pending              -> WAIT(interval), poll again
        Ready                -> FETCH(result.sample), done
        anything else        -> PollError(job id, status)

Waits are fixed (no backoff). Polling is unbounded unless ``PollingConfig``
sets ``max_polls`` or ``max_duration_s``. Every result reports how many polls
it took and how long it ran, submit to fetch.
"""

from __future__ import annotations

import asyncio
import logging
import time
from collections.abc import Awaitable, Callable, Mapping
from datetime import UTC, datetime
from enum import Enum
from typing import Any

from pydantic import BaseModel, ConfigDict, Field

from rendergate.core.api.http import (
    ApiError,
    ApiKeyAuth,
    AsyncApiClient,
    HttpClientConfig,
    RetryPolicy,
)
from rendergate.core.config.models import PollingConfig, ProviderConfig
from rendergate.core.gateway.errors import (
    FetchError,
    JobTimeoutError,
    PollError,
    SubmissionError,
    ValidationError,
)
from rendergate.core.imaging.codec import read_metadata
from rendergate.core.providers.fetch import RemoteImageFetcher

logger = logging.getLogger(__name__)

Sleep = Callable[[float], Awaitable[None]]

# Fill jobs: values used when the caller leaves them out
FILL_DEFAULTS: dict[str, Any] = {
    "seed": 0,
    "steps": 50,
    "guidance": 60,
    "output_format": "png",
}

# Cost reported for fill jobs when the provider omits one
DEFAULT_FILL_COST = 5.0


class JobKind(str, Enum):
    """Payload shapes accepted by the same state machine."""

    GENERATE = "generate"
    FILL = "fill"


class JobStatus(str, Enum):
    """Poll statuses with meaning to the client. Anything else is terminal failure."""

    PENDING = "Pending"
    READY = "Ready"


class Job(BaseModel):
    """One submitted provider job. Lives only for the duration of one request.

    Attributes:
        id: Provider job id
        polling_url: Absolute URL polled for status
        cost_estimate: Provider's cost estimate, when reported
        created_at: Submission time (UTC)
        kind: Payload shape
        extra: Remaining fields of the submit response
    """

    model_config = ConfigDict(frozen=True)

    id: str
    polling_url: str
    cost_estimate: float | None = None
    created_at: datetime = Field(default_factory=lambda: datetime.now(UTC))
    kind: JobKind = JobKind.GENERATE
    extra: dict[str, Any] = Field(default_factory=dict)


class PollResult(BaseModel):
    """One poll answer."""

    model_config = ConfigDict(frozen=True)

    status: str
    sample_url: str | None = None
    raw: dict[str, Any] = Field(default_factory=dict)

    @property
    def is_pending(self) -> bool:
        return self.status == JobStatus.PENDING.value

    @property
    def is_ready(self) -> bool:
        return self.status == JobStatus.READY.value


class ProviderAsset(BaseModel):
    """Fetched asset plus instrumentation.

    ``width``/``height``/``format`` are read best-effort from the bytes and
    stay None when the image header cannot be parsed.
    """

    model_config = ConfigDict(frozen=True)

    data: bytes = Field(repr=False)
    width: int | None = None
    height: int | None = None
    format: str | None = None
    mime: str | None = None
    job_id: str | None = None
    cost_estimate: float | None = None
    duration_ms: int
    poll_count: int = 0
    final: dict[str, Any] = Field(default_factory=dict)

    def metadata(self) -> dict[str, Any]:
        """Provider-side details worth passing to the caller."""
        meta: dict[str, Any] = {"job_id": self.job_id, "cost": self.cost_estimate}
        meta.update(self.final)
        return {k: v for k, v in meta.items() if v is not None}


def _require_text(payload: Mapping[str, Any], key: str) -> str:
    value = payload.get(key)
    if not isinstance(value, str) or not value.strip():
        return ""
    return value


class ExternalJobClient:
    """Generic async submit/poll/fetch client.

    Args:
        provider: Base URL, key and timeout of the job API
        polling: Delay, interval and optional bounds
        auth_header: Header carrying the API key
        transport: Optional custom transport (useful for testing)
        sleep: Awaitable used for every wait (defaults to asyncio.sleep)
        fetcher: Downloader for result URLs (no credentials attached)
    """

    def __init__(
        self,
        provider: ProviderConfig,
        polling: PollingConfig | None = None,
        *,
        auth_header: str = "x-key",
        provider_name: str = "flux",
        transport=None,
        sleep: Sleep | None = None,
        fetcher: RemoteImageFetcher | None = None,
    ) -> None:
        self.provider = provider
        self.polling = polling or PollingConfig()
        self.provider_name = provider_name
        self._sleep = sleep or asyncio.sleep

        auth = ApiKeyAuth.for_provider(provider, auth_header)
        self._client = AsyncApiClient(
            HttpClientConfig.for_provider(provider),
            auth=auth,
            retry_policy=RetryPolicy(max_attempts=provider.max_attempts),
            transport=transport,
        )
        self._owns_fetcher = fetcher is None
        self._fetcher = fetcher or RemoteImageFetcher(provider.timeout_s, transport=transport)

    async def aclose(self) -> None:
        await self._client.aclose()
        if self._owns_fetcher:
            await self._fetcher.aclose()

    async def __aenter__(self) -> ExternalJobClient:
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        await self.aclose()

    # ------------------------------------------------------------------
    # Entry points
    # ------------------------------------------------------------------

    async def generate(self, endpoint: str, payload: Mapping[str, Any]) -> ProviderAsset:
        """Text-to-image job. ``payload`` must carry a non-empty ``prompt``.

        The prompt is trimmed and prompt upsampling is always disabled.
        """
        prompt = _require_text(payload, "prompt")
        if not prompt:
            raise SubmissionError("A prompt string is required", provider=self.provider_name)
        body = {**payload, "prompt_upsampling": False, "prompt": prompt.strip()}
        return await self.run(endpoint, body, kind=JobKind.GENERATE)

    async def fill(self, endpoint: str, payload: Mapping[str, Any]) -> ProviderAsset:
        """Image + mask fill job. ``payload`` must carry a base64 ``image``.

        Fill defaults (seed, steps, guidance, output format) apply only to
        keys the caller left out.
        """
        if not _require_text(payload, "image"):
            raise SubmissionError(
                "Fill requests require a base64 image payload", provider=self.provider_name
            )
        prompt = payload.get("prompt")
        body = {
            "prompt": prompt if isinstance(prompt, str) else "",
            "prompt_upsampling": False,
            **FILL_DEFAULTS,
            **{k: v for k, v in payload.items() if v is not None},
        }
        return await self.run(endpoint, body, kind=JobKind.FILL)

    async def run(
        self, endpoint: str, payload: Mapping[str, Any], *, kind: JobKind
    ) -> ProviderAsset:
        """Drive one job through the whole state machine.

        Raises:
            SubmissionError: Submit rejected
            PollError: Terminal non-Ready status, or a failed poll call
            JobTimeoutError: Configured poll/duration bound exceeded
            FetchError: Asset download failed after Ready
        """
        start = time.perf_counter()
        job: Job | None = None
        try:
            job = await self.submit(endpoint, payload, kind=kind)
            await self._sleep(self.polling.initial_delay_s)

            poll_count = 0
            while True:
                poll_count += 1
                result = await self.poll(job)

                if result.is_ready:
                    return await self._finish(job, result, start, poll_count)

                if not result.is_pending:
                    logger.warning(
                        "Job %s non-pending status: %s %s",
                        job.id,
                        result.status,
                        str(result.raw)[:500],
                    )
                    raise PollError(
                        f"{self.provider_name} job did not complete: "
                        f"status={result.status} id={job.id}",
                        provider=self.provider_name,
                        job_id=job.id,
                        status=result.status,
                        detail=result.raw,
                    )

                self._check_bounds(job, poll_count, start)
                logger.debug("Job %s pending (poll %d)", job.id, poll_count)
                await self._sleep(self.polling.interval_s)
        except Exception as e:
            logger.error(
                "%s job error: id=%s %s",
                self.provider_name,
                job.id if job else "unknown",
                e,
            )
            raise

    # ------------------------------------------------------------------
    # Steps
    # ------------------------------------------------------------------

    async def submit(
        self, endpoint: str, payload: Mapping[str, Any], *, kind: JobKind = JobKind.GENERATE
    ) -> Job:
        if not self.provider.has_credentials:
            raise SubmissionError(
                f"{self.provider_name} API key is not configured", provider=self.provider_name
            )

        try:
            resp = await self._client.post(endpoint, json_body=dict(payload))
            data = self._client.json(resp)
        except ApiError as e:
            raise SubmissionError(
                f"{self.provider_name} submission failed: {e.message}",
                provider=self.provider_name,
                status_code=e.status_code,
                detail=e.response_body_snippet,
            ) from e

        if not isinstance(data, dict) or not data.get("polling_url") or not data.get("id"):
            raise SubmissionError(
                f"{self.provider_name} submission response lacks id/polling_url",
                provider=self.provider_name,
                detail=data,
            )

        extra = {k: v for k, v in data.items() if k not in ("id", "polling_url", "cost")}
        cost = data.get("cost")
        if not isinstance(cost, int | float) or isinstance(cost, bool):
            cost = None
        if cost is None and kind is JobKind.FILL:
            cost = DEFAULT_FILL_COST
        job = Job(
            id=str(data["id"]),
            polling_url=str(data["polling_url"]),
            cost_estimate=cost,
            kind=kind,
            extra=extra,
        )
        logger.info(
            "%s %s job created: id=%s cost=%s", self.provider_name, kind.value, job.id, cost
        )
        return job

    async def poll(self, job: Job) -> PollResult:
        try:
            resp = await self._client.get(job.polling_url)
            data = self._client.json(resp)
        except ApiError as e:
            raise PollError(
                f"{self.provider_name} poll failed: {e.message}",
                provider=self.provider_name,
                job_id=job.id,
                status_code=e.status_code,
                detail=e.response_body_snippet,
            ) from e

        if not isinstance(data, dict):
            raise PollError(
                f"{self.provider_name} poll returned a non-object body",
                provider=self.provider_name,
                job_id=job.id,
                detail=data,
            )

        result = data.get("result")
        sample = result.get("sample") if isinstance(result, dict) else None
        return PollResult(
            status=str(data.get("status")),
            sample_url=sample if isinstance(sample, str) else None,
            raw={k: v for k, v in data.items() if k != "status"},
        )

    async def fetch(self, job: Job, url: str | None) -> bytes:
        if not url:
            raise FetchError(
                f"{self.provider_name} job {job.id} is Ready but has no result sample",
                provider=self.provider_name,
                job_id=job.id,
                status=JobStatus.READY.value,
            )
        try:
            return await self._fetcher.fetch(url, job_id=job.id)
        except ValidationError as e:
            raise FetchError(
                f"{self.provider_name} job {job.id} returned an invalid result URL",
                provider=self.provider_name,
                job_id=job.id,
                status=JobStatus.READY.value,
                detail=url,
            ) from e
        except FetchError as e:
            e.provider = self.provider_name
            e.status = JobStatus.READY.value
            raise

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------

    async def _finish(
        self, job: Job, result: PollResult, start: float, poll_count: int
    ) -> ProviderAsset:
        data = await self.fetch(job, result.sample_url)
        meta = read_metadata(data)
        duration_ms = int((time.perf_counter() - start) * 1000)

        logger.info(
            "%s job ready: id=%s cost=%s duration_ms=%d poll_count=%d",
            self.provider_name,
            job.id,
            job.cost_estimate,
            duration_ms,
            poll_count,
        )
        return ProviderAsset(
            data=data,
            width=meta.width if meta else None,
            height=meta.height if meta else None,
            format=meta.format if meta else None,
            mime=f"image/{meta.format}" if meta and meta.format else None,
            job_id=job.id,
            cost_estimate=job.cost_estimate,
            duration_ms=duration_ms,
            poll_count=poll_count,
            final={**job.extra, **result.raw},
        )

    def _check_bounds(self, job: Job, poll_count: int, start: float) -> None:
        max_polls = self.polling.max_polls
        if max_polls is not None and poll_count >= max_polls:
            raise JobTimeoutError(
                f"{self.provider_name} job {job.id} still pending after {poll_count} polls",
                provider=self.provider_name,
                job_id=job.id,
                status=JobStatus.PENDING.value,
            )
        max_duration = self.polling.max_duration_s
        if max_duration is not None and time.perf_counter() - start >= max_duration:
            raise JobTimeoutError(
                f"{self.provider_name} job {job.id} still pending after {max_duration:g}s",
                provider=self.provider_name,
                job_id=job.id,
                status=JobStatus.PENDING.value,
            )
