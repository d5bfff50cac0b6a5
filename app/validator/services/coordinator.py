"""
Batch upload coordinator.

Submits the selected files to the validation relay one at a time and keeps
an UploadState describing progress and per-file outcomes.

Files are processed sequentially: each relay call finishes before the next
one starts.
"""

import json
import logging
from contextlib import asynccontextmanager
from typing import Any, AsyncIterator, Callable, Iterable

import httpx

from ..models import FileOutcome, SelectedFile, UploadState

logger = logging.getLogger(__name__)

NON_PDF_ERROR = "Please upload PDF files only"
EMPTY_RESPONSE_ERROR = "Empty response from server"
DEFAULT_FAILURE_ERROR = "Validation failed"

StateListener = Callable[[UploadState], None]


def _error_message(error: Any) -> str:
    """Error text of a failure envelope; non-string errors are shown as JSON."""
    if not error:
        return DEFAULT_FAILURE_ERROR
    if isinstance(error, str):
        return error
    return json.dumps(error, default=str)


class BatchUploadCoordinator:
    """
    Drives sequential submission of a batch of files to the relay endpoint.

    The coordinator owns two values: the accepted batch (``files``) and the
    observable ``state``. Both are only ever replaced, never edited in place.
    """

    def __init__(
        self,
        relay_url: str,
        client: httpx.AsyncClient | None = None,
        timeout: float = 120.0,
        on_change: StateListener | None = None,
    ):
        """
        Initialize the coordinator.

        Args:
            relay_url: URL of the validation relay endpoint.
            client: HTTP client to use. When None, a client is opened for each
                batch and closed when the batch ends.
            timeout: Per-request timeout in seconds for the owned client.
            on_change: Called with the new state after every transition.
        """
        self.relay_url = relay_url
        self.timeout = timeout
        self.on_change = on_change
        self._client = client
        self.files: tuple[SelectedFile, ...] = ()
        self.state = UploadState()

    # -------------------------------------------------------------------------
    # Selection
    # -------------------------------------------------------------------------

    def select_files(self, files: Iterable[SelectedFile]) -> bool:
        """
        Accept a new selection.

        Only PDF entries are kept. If the selection holds no PDF at all it is
        rejected, the current batch is left untouched and the state carries
        an error message.

        Returns:
            True if the selection was accepted.
        """
        accepted = tuple(f for f in files if f.is_pdf)
        if not accepted:
            logger.info("Rejected selection without PDF files")
            self._transition(UploadState(error=NON_PDF_ERROR))
            return False

        self.files = accepted
        self._transition(UploadState())
        return True

    def reset(self) -> None:
        """Clear the batch and the state."""
        self.files = ()
        self._transition(UploadState())

    # -------------------------------------------------------------------------
    # Submission
    # -------------------------------------------------------------------------

    async def submit_batch(
        self, files: Iterable[SelectedFile] | None = None
    ) -> UploadState:
        """
        Validate every file of the batch, one after the other.

        Every file yields exactly one FileOutcome, in batch order. Transport
        and response errors become error outcomes; they never stop the batch.

        Args:
            files: Files to submit. Defaults to the accepted selection.

        Returns:
            The terminal UploadState.
        """
        batch = tuple(files) if files is not None else self.files
        if not batch:
            return self.state

        self._transition(UploadState(uploading=True, total_count=len(batch)))
        outcomes: list[FileOutcome] = []

        try:
            async with self._session() as client:
                for position, selected in enumerate(batch, start=1):
                    self._transition(
                        self.state.model_copy(update={"current_index": position})
                    )
                    logger.info(
                        "Validating %d/%d: %s (%d bytes)",
                        position,
                        len(batch),
                        selected.name,
                        selected.size,
                    )
                    try:
                        outcome = await self.submit_file(client, selected)
                    except Exception as e:
                        logger.exception("Error validating %s", selected.name)
                        outcome = FileOutcome.failed(selected.name, str(e) or type(e).__name__)
                    outcomes.append(outcome)
                    self._transition(
                        self.state.model_copy(update={"results": tuple(outcomes)})
                    )
        finally:
            failed = sum(1 for o in outcomes if o.status == "error")
            logger.info("Batch finished: %d file(s), %d failed", len(outcomes), failed)
            self._transition(UploadState(results=tuple(outcomes)))

        return self.state

    async def submit_file(
        self, client: httpx.AsyncClient, selected: SelectedFile
    ) -> FileOutcome:
        """Send one file to the relay and convert the reply to a FileOutcome."""
        try:
            response = await client.post(
                self.relay_url,
                files={"file": (selected.name, selected.data, selected.content_type)},
            )
        except httpx.HTTPError as e:
            logger.warning("Relay call failed for %s: %s", selected.name, e)
            return FileOutcome.failed(selected.name, str(e) or "Upload failed")

        if not response.is_success:
            return FileOutcome.failed(
                selected.name,
                f"HTTP {response.status_code}: {response.reason_phrase}",
            )

        text = response.text
        if not text:
            return FileOutcome.failed(selected.name, EMPTY_RESPONSE_ERROR)

        try:
            data = json.loads(text)
        except json.JSONDecodeError as e:
            return FileOutcome.failed(selected.name, f"Malformed response from server: {e}")

        if not isinstance(data, dict):
            return FileOutcome.failed(selected.name, "Malformed response from server")

        if not data.get("success"):
            return FileOutcome.failed(selected.name, _error_message(data.get("error")))

        result = data.get("result")
        if not isinstance(result, dict):
            return FileOutcome.failed(selected.name, "Malformed response from server: no result")

        return FileOutcome.succeeded(selected.name, result)

    # -------------------------------------------------------------------------
    # Helpers
    # -------------------------------------------------------------------------

    @asynccontextmanager
    async def _session(self) -> AsyncIterator[httpx.AsyncClient]:
        if self._client is not None:
            yield self._client
            return
        async with httpx.AsyncClient(timeout=self.timeout) as client:
            yield client

    def _transition(self, state: UploadState) -> None:
        self.state = state
        if self.on_change is not None:
            self.on_change(state)
