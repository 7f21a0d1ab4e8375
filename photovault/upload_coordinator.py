"""
UploadCoordinator - Fans a batch of uploads out to bounded ingest pipelines.
"""

import logging
import threading
import time
from concurrent.futures import ThreadPoolExecutor, as_completed
from dataclasses import dataclass, field
from typing import List, Optional, Sequence

from .errors import CancellationError
from .ingest_pipeline import IngestOutcome, IngestPipeline
from .photo_record import UploadFile

STATUS_SUCCESS = 'success'
STATUS_PARTIAL = 'partial'
STATUS_FAILURE = 'failure'


@dataclass
class BatchResult:
    """
    Aggregate outcome of one batch upload.

    Outcomes are in completion order, not input order.

    Attributes:
        outcomes: One IngestOutcome per uploaded file
        start_time: Start timestamp
        end_time: Completion timestamp
    """
    outcomes: List[IngestOutcome] = field(default_factory=list)
    start_time: float = field(default_factory=time.time)
    end_time: Optional[float] = None

    @property
    def success_count(self) -> int:
        return sum(1 for o in self.outcomes if o.success)

    @property
    def failed(self) -> List[str]:
        """Filenames that did not commit."""
        return [o.filename for o in self.outcomes if not o.success]

    @property
    def record_ids(self) -> List[str]:
        return [o.record_id for o in self.outcomes if o.success]

    @property
    def status(self) -> str:
        """'success' if every file committed, 'failure' if none did, else 'partial'."""
        successes = self.success_count
        if self.outcomes and successes == len(self.outcomes):
            return STATUS_SUCCESS
        if successes == 0:
            return STATUS_FAILURE
        return STATUS_PARTIAL

    @property
    def elapsed_seconds(self) -> float:
        end = self.end_time if self.end_time is not None else time.time()
        return end - self.start_time

    def to_dict(self) -> dict:
        return {
            'status': self.status,
            'successCount': self.success_count,
            'failedList': self.failed,
            'results': [o.to_dict() for o in self.outcomes],
        }


class UploadCoordinator:
    """
    Runs an IngestPipeline per file with at most `concurrency` running at once.

    The limit is held by a semaphore owned by the coordinator, so it also
    applies across batches submitted concurrently (e.g. by several HTTP
    requests sharing one coordinator).
    """

    def __init__(
        self,
        pipeline: IngestPipeline,
        concurrency: int = 10,
        logger: Optional[logging.Logger] = None
    ):
        """
        Initialize coordinator.

        Args:
            pipeline: Pipeline run for each file
            concurrency: Maximum pipelines running at once (default: 10)
            logger: Optional logger instance
        """
        if concurrency < 1:
            raise ValueError("concurrency must be at least 1")
        self.pipeline = pipeline
        self.concurrency = concurrency
        self.logger = logger or logging.getLogger(__name__)
        self._slots = threading.BoundedSemaphore(concurrency)

    def upload(
        self,
        files: Sequence[UploadFile],
        cancel_event: Optional[threading.Event] = None
    ) -> BatchResult:
        """
        Ingest a batch of files.

        A single failing file never fails the batch; check BatchResult.status.

        Args:
            files: Incoming files
            cancel_event: Shared cancel signal; pipelines not yet started
                when it is set do not start

        Returns:
            BatchResult
        """
        result = BatchResult()
        if not files:
            result.end_time = time.time()
            return result

        cancel_event = cancel_event or threading.Event()
        self.logger.info(f"Starting batch upload: {len(files)} files (concurrency {self.concurrency})")

        workers = min(self.concurrency, len(files))
        with ThreadPoolExecutor(max_workers=workers, thread_name_prefix='ingest') as executor:
            futures = {
                executor.submit(self._run_one, upload, cancel_event): upload
                for upload in files
            }
            try:
                for future in as_completed(futures):
                    upload = futures[future]
                    try:
                        outcome = future.result()
                    except Exception as e:
                        self.logger.exception(f"Pipeline crashed for {upload.filename}: {e}")
                        outcome = IngestOutcome(filename=upload.filename, success=False, error=str(e))
                    result.outcomes.append(outcome)
            except BaseException:
                # Queued pipelines must not start while the executor drains.
                cancel_event.set()
                raise

        result.end_time = time.time()
        failures = len(result.outcomes) - result.success_count
        if failures:
            self.logger.error(f"Some photo uploads failed: {failures} of {len(result.outcomes)}")
        self.logger.info(
            f"Batch upload complete: {result.success_count} saved, {failures} failed "
            f"({result.elapsed_seconds:.1f}s)"
        )
        return result

    def _run_one(self, upload: UploadFile, cancel_event: threading.Event) -> IngestOutcome:
        with self._slots:
            if cancel_event.is_set():
                error = CancellationError(f"Upload cancelled before start: {upload.filename}")
                self.logger.warning(str(error))
                return IngestOutcome(
                    filename=upload.filename,
                    success=False,
                    error=str(error),
                    stage=error.stage,
                )
            return self.pipeline.run(upload, cancel_event)
