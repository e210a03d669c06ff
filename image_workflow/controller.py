"""Image lifecycle state machine: source -> processing -> result."""

from __future__ import annotations

import asyncio
import enum
import logging
import uuid
from contextlib import suppress
from dataclasses import dataclass, field
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Callable, Dict, Optional

from .assets import ImageAsset
from .exceptions import InvalidStateError, ServiceError
from .remover import BackgroundRemover

logger = logging.getLogger(__name__)

DOWNLOAD_STEM = "background-removed-image"
REMOVE_LABEL = "Remove Background"
REMOVING_LABEL = "Removing..."

ErrorHandler = Callable[[ServiceError], None]


class WorkflowState(str, enum.Enum):
    EMPTY = "empty"
    SOURCE_READY = "source_ready"
    PROCESSING = "processing"
    RESULT_READY = "result_ready"


@dataclass(frozen=True)
class ProcessingRequest:
    """Binds an in-flight removal call to the source it was issued for."""

    source_id: str
    request_id: str = field(default_factory=lambda: uuid.uuid4().hex)
    started_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))

    def to_dict(self) -> Dict[str, Any]:
        return {
            "request_id": self.request_id,
            "source_id": self.source_id,
            "started_at": self.started_at.isoformat(),
        }


@dataclass(frozen=True)
class ViewState:
    """Everything a presentation layer needs to render the workflow."""

    state: WorkflowState
    source_id: Optional[str] = None
    source_uri: Optional[str] = None
    result_id: Optional[str] = None
    result_uri: Optional[str] = None
    can_remove: bool = False
    can_download: bool = False
    can_clear: bool = False
    is_processing: bool = False
    remove_label: str = REMOVE_LABEL
    last_error: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "state": self.state.value,
            "source_id": self.source_id,
            "source_uri": self.source_uri,
            "result_id": self.result_id,
            "result_uri": self.result_uri,
            "can_remove": self.can_remove,
            "can_download": self.can_download,
            "can_clear": self.can_clear,
            "is_processing": self.is_processing,
            "remove_label": self.remove_label,
            "last_error": self.last_error,
        }


class ImageWorkflowController:
    """Owns the source slot, the result slot and the single outstanding request.

    Every public method except :meth:`wait_for_pending` and :meth:`shutdown` is
    synchronous and is meant to be called from the event loop thread, once per
    user event. The removal collaborator is the only suspension point; its
    completion is routed back through :meth:`removal_succeeded` and
    :meth:`removal_failed`, which drop completions for a source that is no
    longer current.
    """

    def __init__(
        self,
        remover: BackgroundRemover,
        download_dir: Path | None = None,
        removal_timeout: float | None = None,
        error_handler: ErrorHandler | None = None,
    ) -> None:
        self.remover = remover
        self.download_dir = download_dir
        self.removal_timeout = removal_timeout
        self.error_handler = error_handler
        self._source: Optional[ImageAsset] = None
        self._result: Optional[ImageAsset] = None
        self._request: Optional[ProcessingRequest] = None
        self._tasks: Dict[str, asyncio.Task[None]] = {}
        self._last_error: Optional[str] = None

    # ------------------------------------------------------------------
    # Derived state
    # ------------------------------------------------------------------

    @property
    def state(self) -> WorkflowState:
        if self._source is None:
            return WorkflowState.EMPTY
        if self._result is not None:
            return WorkflowState.RESULT_READY
        if self._request is not None:
            return WorkflowState.PROCESSING
        return WorkflowState.SOURCE_READY

    @property
    def source(self) -> Optional[ImageAsset]:
        return self._source

    @property
    def result(self) -> Optional[ImageAsset]:
        return self._result

    @property
    def request(self) -> Optional[ProcessingRequest]:
        return self._request

    @property
    def last_error(self) -> Optional[str]:
        return self._last_error

    def view_state(self) -> ViewState:
        state = self.state
        source = self._source
        result = self._result
        return ViewState(
            state=state,
            source_id=source.asset_id if source else None,
            source_uri=source.data_uri if source else None,
            result_id=result.asset_id if result else None,
            result_uri=result.data_uri if result else None,
            can_remove=state is WorkflowState.SOURCE_READY,
            can_download=state is WorkflowState.RESULT_READY,
            can_clear=state is not WorkflowState.EMPTY,
            is_processing=state is WorkflowState.PROCESSING,
            remove_label=REMOVING_LABEL if state is WorkflowState.PROCESSING else REMOVE_LABEL,
            last_error=self._last_error,
        )

    # ------------------------------------------------------------------
    # User events
    # ------------------------------------------------------------------

    def load_source(
        self,
        asset: ImageAsset | bytes,
        media_type: str | None = None,
        filename: str | None = None,
    ) -> ImageAsset:
        """Replace the source image, discarding any result or outstanding request.

        Raw bytes are validated first; an :class:`InvalidInputError` leaves the
        controller untouched.
        """

        if not isinstance(asset, ImageAsset):
            asset = ImageAsset.from_bytes(asset, media_type=media_type, filename=filename)

        if self._request is not None:
            logger.info("Abandoning removal request %s for superseded source", self._request.request_id)
        self._source = asset
        self._result = None
        self._request = None
        self._last_error = None
        logger.info("Loaded source %s (%s, %dx%d)", asset.asset_id, asset.media_type, asset.width, asset.height)
        return asset

    def clear_source(self) -> None:
        if self._request is not None:
            logger.info("Abandoning removal request %s for cleared source", self._request.request_id)
        self._source = None
        self._result = None
        self._request = None
        self._last_error = None
        logger.info("Cleared source")

    def request_removal(self) -> ProcessingRequest:
        """Start background removal for the current source without blocking.

        Must be called while an asyncio event loop is running.
        """

        state = self.state
        source = self._source
        if source is None or state is not WorkflowState.SOURCE_READY:
            raise InvalidStateError(f"Cannot request background removal while {state.value}")

        request = ProcessingRequest(source_id=source.asset_id)
        # raises RuntimeError without a running loop; slots stay untouched
        self._start_task(request, source)
        self._request = request
        self._last_error = None
        logger.info("Issued removal request %s for source %s", request.request_id, source.asset_id)
        return request

    def removal_succeeded(self, result: ImageAsset, for_source: ImageAsset) -> bool:
        """Store ``result`` if it belongs to the current request; return whether it did."""

        if not self._is_current(for_source):
            logger.debug("Ignoring stale removal result for source %s", for_source.asset_id)
            return False

        self._result = result
        self._request = None
        logger.info("Background removed for source %s", for_source.asset_id)
        return True

    def removal_failed(self, for_source: ImageAsset, error: ServiceError | None = None) -> bool:
        """Return to SOURCE_READY and report ``error`` if it belongs to the current request."""

        if not self._is_current(for_source):
            logger.debug("Ignoring stale removal failure for source %s", for_source.asset_id)
            return False

        error = error or ServiceError("Background removal failed")
        self._request = None
        self._last_error = str(error)
        logger.warning("Background removal failed for source %s: %s", for_source.asset_id, error)
        if self.error_handler is not None:
            self.error_handler(error)
        return True

    def download(self, destination: Path | None = None) -> Path:
        """Save the result to ``destination`` or to the fixed name in ``download_dir``."""

        state = self.state
        result = self._result
        if result is None or state is not WorkflowState.RESULT_READY:
            raise InvalidStateError(f"Nothing to download while {state.value}")

        if destination is None:
            if self.download_dir is None:
                raise ValueError("No download directory configured; pass a destination")
            destination = self.download_dir / result.suggested_filename(DOWNLOAD_STEM)
        destination.parent.mkdir(parents=True, exist_ok=True)
        destination.write_bytes(result.data)
        logger.info("Saved result %s to %s", result.asset_id, destination)
        return destination

    # ------------------------------------------------------------------
    # Task management
    # ------------------------------------------------------------------

    @property
    def pending_tasks(self) -> int:
        return sum(1 for task in self._tasks.values() if not task.done())

    async def wait_for_pending(self) -> None:
        """Wait until the collaborator call for the current request has completed."""
        request = self._request
        task = self._tasks.get(request.request_id) if request else None
        if task is not None:
            with suppress(asyncio.CancelledError):
                await asyncio.shield(task)

    async def shutdown(self) -> None:
        """Cancel every collaborator call still running, abandoned ones included."""
        tasks = list(self._tasks.values())
        for task in tasks:
            task.cancel()
        for task in tasks:
            with suppress(asyncio.CancelledError):
                await task
        self._tasks.clear()
        self._request = None

    def _is_current(self, for_source: ImageAsset) -> bool:
        return (
            self._request is not None
            and self._source is not None
            and self._source.asset_id == for_source.asset_id
            and self._request.source_id == for_source.asset_id
        )

    def _start_task(self, request: ProcessingRequest, source: ImageAsset) -> None:
        task = asyncio.get_running_loop().create_task(self._run_removal(request, source))
        self._tasks[request.request_id] = task
        task.add_done_callback(lambda _: self._tasks.pop(request.request_id, None))

    async def _run_removal(self, request: ProcessingRequest, source: ImageAsset) -> None:
        try:
            call = self.remover.remove_background(source)
            if self.removal_timeout is not None:
                result = await asyncio.wait_for(call, timeout=self.removal_timeout)
            else:
                result = await call
        except asyncio.TimeoutError:
            error = ServiceError(f"Background removal timed out after {self.removal_timeout}s")
        except ServiceError as exc:
            error = exc
        except asyncio.CancelledError:
            raise
        except Exception as exc:  # unexpected collaborator bug
            logger.exception("Unexpected error from background remover")
            error = ServiceError(f"Unexpected processing error: {exc}")
        else:
            if self._request is request:
                self.removal_succeeded(result, source)
            else:
                logger.debug("Ignoring result of abandoned request %s", request.request_id)
            return

        # a reissued request for the same source must not receive this failure
        if self._request is request:
            self.removal_failed(source, error)
        else:
            logger.debug("Ignoring failure of abandoned request %s: %s", request.request_id, error)
