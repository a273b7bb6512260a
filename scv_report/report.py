"""Report orchestrator - sequences a full report run.

configuration -> fetch inputs -> resolve pricing -> choose dataset size
mode -> build sheets -> populate every section -> write -> upload ->
manifest.

Dataset size mode is a two-state workflow.  A run starts in ``standard``
mode and moves to ``large`` at most once, either proactively (the zero
pre-fill estimate ``users * products * 5`` is above the threshold) or
reactively (a build attempt raises :class:`CapacityError`).  Each build
attempt works on a fresh sheet set; a failure in ``large`` mode is final.
Progress checkpoints are reported at most once per run, so a retry never
moves the reported percentage backwards.

Usage::

    from scv_report.report import ReportOrchestrator
    from scv_report.schema import ReportConfiguration
    from scv_report.storage import LocalBlobStore

    config = ReportConfiguration.from_options("acme_x1", {"is_final": False})
    manifest = ReportOrchestrator(config, LocalBlobStore("bucket")).generate()
"""

import logging
import tempfile
import time
from dataclasses import dataclass
from datetime import datetime
from pathlib import Path
from typing import Callable

from .errors import CapacityError, PersistenceError, ReportError
from .generator.extras import FindabilityPopulator, TimersPopulator
from .generator.headers import HeaderGenerator
from .generator.products import ImageFetcher, ProductsPopulator
from .generator.values import ValueAssigner
from .generator.workbook import build_sheet_set
from .processor.ingestion import fetch_findability, fetch_products, fetch_sessions
from .schema.config import SIGNED_URL_EXPIRY_SECONDS, ReportConfiguration
from .schema.layout import section_layouts
from .schema.models import OutputManifest
from .storage import XLSX_CONTENT_TYPE, BlobStore


logger = logging.getLogger(__name__)

ProgressCallback = Callable[..., None]


# ---------------------------------------------------------------------------
# Progress checkpoints
# ---------------------------------------------------------------------------

FETCH_COMPLETE = "fetch_complete"
PRICING_RESOLVED = "pricing_resolved"
HEADERS_WRITTEN = "headers_written"
USER_PASS_COMPLETE = "per_user_pass_complete"
FILE_WRITTEN = "file_written"
UPLOAD_COMPLETE = "upload_complete"

CHECKPOINT_PERCENT = {
    FETCH_COMPLETE: 20,
    PRICING_RESOLVED: 30,
    HEADERS_WRITTEN: 45,
    USER_PASS_COMPLETE: 70,
    FILE_WRITTEN: 85,
    UPLOAD_COMPLETE: 100,
}


@dataclass(frozen=True)
class ReportInputs:
    """Everything fetched for one run."""
    products: list
    users: list
    findability: list | None


# ---------------------------------------------------------------------------
# ReportOrchestrator
# ---------------------------------------------------------------------------

class ReportOrchestrator:
    """Runs one report generation for one configuration."""

    def __init__(self, config: ReportConfiguration, store: BlobStore,
                 progress: ProgressCallback | None = None,
                 clock: Callable[[], datetime] | None = None,
                 image_session=None,
                 url_expiry: int = SIGNED_URL_EXPIRY_SECONDS):
        self.config = config
        self.store = store
        self.progress = progress
        self.clock = clock or datetime.now
        self.image_session = image_session
        self.url_expiry = url_expiry
        self.attempts = 0
        self._reported = set()

    # -- public -------------------------------------------------------------

    def generate(self) -> OutputManifest:
        """Run the report and return its manifest.

        Raises:
            ReportError: stamped with the project id and failing step.
        """
        started = time.monotonic()
        self._reported = set()
        timestamp = self.clock()
        step = "fetch"
        logger.info("Starting report generation for %s (%s mode)",
                    self.config.project_id, self.config.dataset_size_mode.value)
        try:
            inputs = self.fetch_inputs()
            self._checkpoint(FETCH_COMPLETE, products=len(inputs.products),
                             users=len(inputs.users))

            step = "pricing"
            pricing = self.config.resolve_pricing_mode(inputs.products)
            self._checkpoint(PRICING_RESOLVED, hasPrices=pricing)

            step = "build"
            if (not self.config.large_dataset
                    and self.config.exceeds_large_dataset_threshold(
                        len(inputs.users), len(inputs.products))):
                logger.warning("Switching to large dataset mode proactively")
                self.config.enter_large_dataset_mode()

            filename = self.config.report_filename(timestamp)
            with tempfile.TemporaryDirectory(prefix="scv-report-") as work_dir:
                path = self.build_with_retry(inputs, Path(work_dir) / filename, timestamp)
                self._checkpoint(FILE_WRITTEN, filename=filename)

                step = "upload"
                key = self.config.output_key(filename)
                reference = self.upload(path, key)

            duration = round(time.monotonic() - started, 3)
            manifest = OutputManifest(
                filename=filename,
                storage_key=key,
                download_reference=reference,
                duration_seconds=duration,
                product_count=len(inputs.products),
                user_count=len(inputs.users),
                pricing_included=self.config.pricing_included,
                dataset_size_mode=self.config.dataset_size_mode,
            )
            self._checkpoint(UPLOAD_COMPLETE, storageKey=key)
        except ReportError as exc:
            exc.project_id = exc.project_id or self.config.project_id
            exc.step = exc.step or step
            logger.error("Report generation failed: %s", exc)
            raise
        except Exception as exc:
            logger.exception("Unexpected failure during %s", step)
            raise ReportError(f"Report generation failed: {exc}",
                              project_id=self.config.project_id, step=step) from exc

        logger.info("Report %s generated in %.3fs", filename, duration)
        return manifest

    def fetch_inputs(self) -> ReportInputs:
        locations = self.config.storage_locations()
        products = fetch_products(self.store, locations)
        users = fetch_sessions(self.store, locations)
        findability = None
        if self.config.has_findability:
            findability = fetch_findability(self.store, locations)
        return ReportInputs(products=products, users=users, findability=findability)

    # -- build --------------------------------------------------------------

    def build_with_retry(self, inputs: ReportInputs, path: Path, timestamp=None) -> Path:
        """Build the workbook, retrying once in large-dataset mode on CapacityError."""
        while True:
            try:
                return self.build_attempt(inputs, path, timestamp)
            except CapacityError as exc:
                if not self.config.enter_large_dataset_mode():
                    raise
                logger.warning("Attempt %d failed (%s); retrying in large dataset mode",
                               self.attempts, exc.message)

    def build_attempt(self, inputs: ReportInputs, path: Path, timestamp=None) -> Path:
        """Build and save the workbook from scratch.  Thumbnails are purged on exit."""
        self.attempts += 1
        logger.info("Build attempt %d (%s mode)", self.attempts,
                    self.config.dataset_size_mode.value)
        fetcher = ImageFetcher(path.parent / f"images-{self.attempts}",
                               session=self.image_session)
        try:
            sheet_set = build_sheet_set(self.config, created=timestamp)
            layouts = section_layouts(len(inputs.products), self.config.partner,
                                      self.config.pricing_included)

            ProductsPopulator(self.config, sheet_set, fetcher).populate(inputs.products)
            HeaderGenerator(self.config, sheet_set).generate(layouts, len(inputs.users))
            self._checkpoint(HEADERS_WRITTEN)

            assigner = ValueAssigner(self.config, sheet_set, layouts)
            assigner.assign(inputs.users, inputs.products)
            TimersPopulator(sheet_set).populate(inputs.users)
            if inputs.findability is not None:
                FindabilityPopulator(sheet_set).populate(inputs.findability)
            assigner.assign_funnels(inputs.users)
            self._checkpoint(USER_PASS_COMPLETE)

            return sheet_set.save(path)
        except MemoryError as exc:
            raise CapacityError("Ran out of memory while building the workbook") from exc
        finally:
            fetcher.cleanup()

    # -- upload -------------------------------------------------------------

    def upload(self, path: Path, key: str) -> str:
        try:
            self.store.put_bytes(key, path.read_bytes(), XLSX_CONTENT_TYPE)
            reference = self.store.signed_url(key, self.url_expiry)
        except PersistenceError:
            raise
        except Exception as exc:
            raise PersistenceError(f"Upload of {key} failed: {exc}") from exc
        path.unlink()
        logger.info("Uploaded %s, local file deleted", key)
        return reference

    # -- progress -----------------------------------------------------------

    def _checkpoint(self, step: str, **extra) -> None:
        """Report *step* once per run; a retried attempt does not repeat it."""
        if self.progress is None or step in self._reported:
            return
        self._reported.add(step)
        try:
            self.progress(CHECKPOINT_PERCENT[step], step, extra or None)
        except Exception:
            logger.exception("Progress callback failed at %s", step)


def generate_report(project_id, store: BlobStore, options=None, **kwargs) -> OutputManifest:
    """Build a configuration from request-style options and run the report."""
    config = ReportConfiguration.from_options(project_id, options)
    return ReportOrchestrator(config, store, **kwargs).generate()
