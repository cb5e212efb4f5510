"""
Single-flight background queue that fetches AI descriptions for photos.
"""

import gc
import os
import threading
import time
import traceback
from collections import deque
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass, field
from typing import Deque, Dict, Any, Iterable, Optional

import psutil

from .catalog_db import CatalogDatabase
from .config import AppConfig
from .description_provider import DescriptionProvider
from .logging_setup import get_logger
from .models import ENQUEUEABLE_STATUSES, STATUS_PROCESSING
from .settings import SettingsStore

logger = get_logger(__name__)


@dataclass
class ProcessingStats:
    """Class to track processing statistics."""
    enqueued_photos: int = 0
    processed_photos: int = 0
    successful_photos: int = 0
    failed_photos: int = 0
    total_time: float = 0

    def to_dict(self) -> Dict[str, Any]:
        """Convert stats to dictionary."""
        result = {k: v for k, v in self.__dict__.items()}
        if self.processed_photos > 0:
            result['success_rate'] = self.successful_photos / self.processed_photos
            result['avg_time_per_photo'] = self.total_time / self.processed_photos
        else:
            result['success_rate'] = 0
            result['avg_time_per_photo'] = 0
        return result


@dataclass
class QueueState:
    """In-flight flag and FIFO of photo ids. Only EnrichmentQueue writes to it."""
    pending: Deque[int] = field(default_factory=deque)
    is_processing: bool = False
    current_id: Optional[int] = None

    def contains(self, photo_id: int) -> bool:
        """Whether the id is waiting or currently being described."""
        return photo_id == self.current_id or photo_id in self.pending


class EnrichmentQueue:
    """
    Describes queued photos one at a time.

    At most one description request is in flight at any moment. Draining runs
    on a single worker thread, or inline in the caller when background
    enrichment is disabled.
    """

    def __init__(self, catalog: CatalogDatabase, provider: DescriptionProvider,
                 settings: SettingsStore, config: AppConfig):
        """
        Initialize the queue.

        Args:
            catalog: Catalog the results are written to
            provider: Description service
            settings: Source of the API key and endpoint, read for every call
            config: Application configuration
        """
        self.catalog = catalog
        self.provider = provider
        self.settings = settings
        self.config = config

        self.state = QueueState()
        self._lock = threading.Lock()
        self._idle = threading.Event()
        self._idle.set()
        self._closed = False

        self.stats = ProcessingStats()
        self.stats_lock = threading.RLock()

        if config.background_enrichment:
            self._executor = ThreadPoolExecutor(max_workers=1, thread_name_prefix="Enrich")
        else:
            self._executor = None

    @property
    def is_processing(self) -> bool:
        with self._lock:
            return self.state.is_processing

    def queued_ids(self):
        """Snapshot of the ids waiting to be described, in order."""
        with self._lock:
            return list(self.state.pending)

    def enqueue(self, photo_ids: Iterable[int]) -> int:
        """
        Add photos to the queue and start draining.

        A photo is skipped when it is already queued or in flight, unknown,
        already completed or processing, or carries a user edit.

        Args:
            photo_ids: Ids to add, in order

        Returns:
            Number of ids added

        Raises:
            RuntimeError: If the queue has been closed
        """
        added = 0
        with self._lock:
            if self._closed:
                raise RuntimeError("Enrichment queue is closed")
            for photo_id in photo_ids:
                if self.state.contains(photo_id):
                    continue
                photo = self.catalog.get(photo_id)
                if photo is None:
                    logger.warning(f"Cannot enqueue unknown photo {photo_id}")
                    continue
                if photo.status not in ENQUEUEABLE_STATUSES:
                    logger.debug(f"Skipping photo {photo_id} with status '{photo.status}'")
                    continue
                if photo.is_edited:
                    logger.debug(f"Skipping photo {photo_id} with a user-edited description")
                    continue
                self.state.pending.append(photo_id)
                added += 1

        if added:
            with self.stats_lock:
                self.stats.enqueued_photos += added
            logger.info(f"Enqueued {added} photos for description")

        self.drain()
        return added

    def drain(self) -> None:
        """
        Start processing the queue unless it is empty or already running.
        Safe to call redundantly.

        Raises:
            RuntimeError: If the worker has been shut down
        """
        with self._lock:
            if self.state.is_processing or not self.state.pending:
                return
            self.state.is_processing = True
            self._idle.clear()

        if self._executor is None:
            self._run()
            return

        try:
            self._executor.submit(self._run)
        except RuntimeError:
            with self._lock:
                self.state.is_processing = False
                self._idle.set()
            raise

    def _run(self) -> None:
        """Process queued photos until the queue is empty."""
        try:
            while True:
                with self._lock:
                    # Emptiness check and flag reset share the lock so an
                    # enqueue racing with the last item is never stranded.
                    if not self.state.pending:
                        self.state.is_processing = False
                        self._idle.set()
                        break
                    photo_id = self.state.pending.popleft()
                    self.state.current_id = photo_id

                try:
                    self._process_photo(photo_id)
                except Exception as e:
                    logger.error(f"Unexpected error on photo {photo_id}, continuing with the queue: {str(e)}")
                finally:
                    with self._lock:
                        self.state.current_id = None
        except BaseException:
            with self._lock:
                self.state.is_processing = False
                self._idle.set()
            raise

        self._log_detailed_stats()

    def _process_photo(self, photo_id: int) -> bool:
        """
        Describe one photo and record the outcome.

        Any error is contained to this photo: it is logged and the photo is
        marked failed where possible.

        Returns:
            True if a description was stored, False otherwise
        """
        start_time = time.time()
        attempted = False
        success = False
        try:
            photo = self.catalog.get(photo_id)
            if photo is None:
                logger.warning(f"Photo {photo_id} disappeared from the catalog")
                return False
            if photo.status not in ENQUEUEABLE_STATUSES or photo.is_edited:
                logger.debug(f"Photo {photo_id} no longer needs a description")
                return False

            attempted = True
            self.catalog.update_status(photo_id, STATUS_PROCESSING)

            api_config = self.settings.get_api_config()
            description = self.provider.describe(photo.file_path, api_config)

            if description and description.strip():
                self.catalog.commit_description(photo_id, description)
                success = True
                logger.info(f"Described {os.path.basename(photo.file_path)} (ID: {photo_id})")
            else:
                logger.warning(f"No description for {os.path.basename(photo.file_path)} (ID: {photo_id})")
                self.catalog.mark_failed(photo_id)
        except Exception as e:
            attempted = True
            logger.error(f"Error describing photo {photo_id}: {str(e)}")
            if self.config.debug_mode:
                logger.error(f"Traceback: {traceback.format_exc()}")
            try:
                self.catalog.mark_failed(photo_id)
            except Exception as inner_e:
                logger.error(f"Could not mark photo {photo_id} as failed: {str(inner_e)}")
        finally:
            if attempted:
                with self.stats_lock:
                    self.stats.processed_photos += 1
                    self.stats.total_time += time.time() - start_time
                    if success:
                        self.stats.successful_photos += 1
                    else:
                        self.stats.failed_photos += 1
                self._check_memory_usage()

        return success

    def recover(self) -> int:
        """
        Re-enqueue photos left over by a previous run.

        Photos still marked 'processing' were interrupted mid-call and are
        reset to 'failed' first. Pending and failed photos that carry a user
        edit are left alone, so a description the user wrote is never
        replaced by AI text; they are picked up again once a restore
        undoes the edit. Call before anything else uses the queue.

        Returns:
            Number of photos enqueued
        """
        self.catalog.reset_interrupted()
        photo_ids = self.catalog.get_ids_by_status(ENQUEUEABLE_STATUSES)
        if photo_ids:
            logger.info(f"Recovering {len(photo_ids)} photos awaiting description")
        return self.enqueue(photo_ids)

    def wait_until_idle(self, timeout: Optional[float] = None) -> bool:
        """
        Block until the queue is drained.

        Returns:
            True if idle, False if the timeout expired
        """
        return self._idle.wait(timeout)

    def close(self, wait: bool = True) -> None:
        """
        Stop the worker.

        Args:
            wait: Finish the whole queue first. Otherwise only the call in
                flight completes; queued photos stay pending in the catalog
                and are picked up by the next recovery.
        """
        with self._lock:
            self._closed = True
            dropped = 0
            if not wait:
                dropped = len(self.state.pending)
                self.state.pending.clear()
        if dropped:
            logger.info(f"Left {dropped} photos pending for the next run")
        if self._executor is not None:
            self._executor.shutdown(wait=True)

    def _log_detailed_stats(self) -> None:
        """Log statistics about the processing so far."""
        with self.stats_lock:
            stats = self.stats.to_dict()
        logger.info(
            f"Queue idle: {stats['successful_photos']}/{stats['processed_photos']} described, "
            f"{stats['failed_photos']} failed, avg {stats['avg_time_per_photo']:.2f}s/photo"
        )

    def _check_memory_usage(self) -> None:
        """Check memory usage and collect garbage if needed."""
        if self.config.memory_limit_mb:
            try:
                process = psutil.Process(os.getpid())
                mem_mb = process.memory_info().rss / 1024 / 1024
                logger.debug(f"Current memory usage: {mem_mb:.1f} MB")

                if mem_mb > self.config.memory_limit_mb * 0.8:
                    logger.warning(f"Memory usage high ({mem_mb:.1f} MB), collecting garbage")
                    gc.collect()
                    new_mem_mb = process.memory_info().rss / 1024 / 1024
                    logger.info(f"Memory usage after cleanup: {new_mem_mb:.1f} MB (freed {mem_mb - new_mem_mb:.1f} MB)")
            except Exception as e:
                logger.debug(f"Error checking memory usage: {str(e)}")
