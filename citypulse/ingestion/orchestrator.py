"""
Pipeline Orchestrator.

Drives every raw blob through the normalization stages:

    Extract -> Validate -> Deduplicate (admit) -> Geocode -> output

Each stage may drop a blob; no single blob's failure aborts the batch.
Output is capped at ``max_records`` accepted events per run.
"""

import logging
import uuid
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass, field
from datetime import date, datetime, timezone
from enum import Enum
from pathlib import Path
from typing import Any, Callable, Dict, Iterable, List, Optional, Tuple, Union

from citypulse.configs.config import Config, load_yaml_config
from citypulse.configs.settings import Settings, get_settings
from citypulse.ingestion.deduplication import (
    AcceptedEventIndex,
    AdmissionResult,
    EventDeduplicator,
    RuleBasedDeduplicator,
    get_deduplicator,
)
from citypulse.ingestion.normalization.field_extractor import (
    FieldExtractor,
    create_field_extractor_from_config,
)
from citypulse.ingestion.normalization.geocoder import Geocoder, create_geocoder_from_config
from citypulse.ingestion.normalization.llm_client import BaseLLMClient, create_llm_client
from citypulse.ingestion.validation import (
    RecordValidator,
    ValidationResult,
    create_validator_from_config,
)
from citypulse.monitoring.logging import with_context
from citypulse.schemas.event import (
    CandidateRecord,
    GeocodedRecord,
    GeocodeProvenance,
    RawBlob,
    ValidatedRecord,
)

logger = logging.getLogger(__name__)

DEFAULT_MAX_RECORDS = 200
NOT_EXTRACTED = "not_extracted"

BlobInput = Union[RawBlob, str]


class PipelineStatus(str, Enum):
    """Status of a pipeline run."""

    SUCCESS = "success"
    PARTIAL_SUCCESS = "partial_success"
    FAILED = "failed"


@dataclass
class PipelineRunResult:
    """Result of one orchestrator run."""

    status: PipelineStatus
    run_id: str
    started_at: datetime
    ended_at: datetime
    total_blobs: int = 0
    extracted: int = 0
    rejected: int = 0
    duplicates: int = 0
    failed: int = 0
    accepted: int = 0
    skipped: int = 0
    rejection_reasons: Dict[str, int] = field(default_factory=dict)
    errors: List[Dict[str, Any]] = field(default_factory=list)
    records: List[GeocodedRecord] = field(default_factory=list)

    @property
    def duration_seconds(self) -> float:
        """Calculate run duration."""
        return (self.ended_at - self.started_at).total_seconds()

    def summary(self) -> Dict[str, Any]:
        """Counters as a plain dict, for logs and CLI output."""
        return {
            "run_id": self.run_id,
            "status": self.status.value,
            "total_blobs": self.total_blobs,
            "extracted": self.extracted,
            "rejected": self.rejected,
            "duplicates": self.duplicates,
            "failed": self.failed,
            "accepted": self.accepted,
            "skipped": self.skipped,
            "rejection_reasons": dict(self.rejection_reasons),
            "duration_seconds": round(self.duration_seconds, 3),
        }


@dataclass
class _BlobOutcome:
    """What the extract + validate stages made of one blob."""

    blob: RawBlob
    candidate: Optional[CandidateRecord] = None
    validation: Optional[ValidationResult] = None
    error: Optional[Dict[str, Any]] = None

    @property
    def validated(self) -> Optional[ValidatedRecord]:
        if self.candidate is not None and self.validation is not None and self.validation.ok:
            return self.candidate
        return None


class PipelineOrchestrator:
    """
    Coordinates the normalization stages for a batch of blobs.

    Responsibilities:
    - Run extract + validate per blob, isolating per-blob failures
    - Admit validated records through the run's AcceptedEventIndex
    - Geocode admitted records and emit them in input order
    - Track counters and rejection reasons for the run

    With ``max_workers > 1`` extraction/validation and geocoding run on a
    thread pool; admission still happens in input order, so which of two
    duplicates survives does not depend on scheduling.
    """

    def __init__(
        self,
        extractor: Optional[FieldExtractor] = None,
        validator: Optional[RecordValidator] = None,
        deduplicator: Optional[EventDeduplicator] = None,
        geocoder: Optional[Geocoder] = None,
        max_records: int = DEFAULT_MAX_RECORDS,
        max_workers: int = 1,
    ):
        self.extractor = extractor or FieldExtractor()
        self.validator = validator or RecordValidator()
        self.deduplicator = deduplicator or RuleBasedDeduplicator()
        self.geocoder = geocoder or Geocoder()
        self.max_records = max_records
        self.max_workers = max(1, int(max_workers))

    # ========================================================================
    # RUN
    # ========================================================================

    def run(self, blobs: Iterable[BlobInput]) -> List[GeocodedRecord]:
        """Process blobs and return the accepted, geocoded records."""
        return self.execute(blobs).records

    def execute(self, blobs: Iterable[BlobInput]) -> PipelineRunResult:
        """Process blobs and return the records plus run bookkeeping."""
        run_id = uuid.uuid4().hex[:12]
        started_at = datetime.now(timezone.utc)
        blob_list = [self._coerce_blob(b) for b in blobs]

        result = PipelineRunResult(
            status=PipelineStatus.SUCCESS,
            run_id=run_id,
            started_at=started_at,
            ended_at=started_at,
            total_blobs=len(blob_list),
        )
        index = AcceptedEventIndex(self.deduplicator, max_records=self.max_records)

        logger.info(
            f"Starting run over {len(blob_list)} blobs "
            f"(max_records={self.max_records}, workers={self.max_workers})",
            extra={"run_id": run_id},
        )

        if self.max_workers > 1:
            self._execute_concurrent(blob_list, index, result)
        else:
            self._execute_sequential(blob_list, index, result)

        result.accepted = len(result.records)
        result.ended_at = datetime.now(timezone.utc)
        result.status = self._final_status(result)

        logger.info(f"Run finished: {result.summary()}", extra={"run_id": run_id})
        return result

    def _execute_sequential(
        self, blobs: List[RawBlob], index: AcceptedEventIndex, result: PipelineRunResult
    ) -> None:
        for position, blob in enumerate(blobs):
            if index.is_full:
                result.skipped = len(blobs) - position
                logger.info(
                    f"Output cap of {self.max_records} reached, skipping {result.skipped} blobs",
                    extra={"run_id": result.run_id},
                )
                break

            outcome = self._extract_and_validate(blob, result.run_id)
            record = self._admit(outcome, index, result)
            if record is not None:
                self._collect(result, *self._geocode(record, blob, result.run_id))

    def _execute_concurrent(
        self, blobs: List[RawBlob], index: AcceptedEventIndex, result: PipelineRunResult
    ) -> None:
        with ThreadPoolExecutor(max_workers=self.max_workers) as pool:
            outcomes = list(
                pool.map(lambda b: self._extract_and_validate(b, result.run_id), blobs)
            )

        admitted: List[tuple] = []
        for outcome in outcomes:
            if index.is_full:
                result.skipped += 1
                continue
            record = self._admit(outcome, index, result)
            if record is not None:
                admitted.append((record, outcome.blob))

        with ThreadPoolExecutor(max_workers=self.max_workers) as pool:
            geocoded = list(
                pool.map(lambda pair: self._geocode(pair[0], pair[1], result.run_id), admitted)
            )

        # Tallied here so worker threads never touch the result
        for record, error in geocoded:
            self._collect(result, record, error)

    # ========================================================================
    # STAGES
    # ========================================================================

    def _extract_and_validate(self, blob: RawBlob, run_id: str) -> _BlobOutcome:
        """Extract and validate one blob. Never raises."""
        outcome = _BlobOutcome(blob=blob)
        stage = "extract"
        try:
            outcome.candidate = self.extractor.extract(blob)
            if outcome.candidate is not None:
                stage = "validate"
                outcome.validation = self.validator.check(outcome.candidate)
        except Exception as e:
            log = with_context(logger, run_id=run_id, source_id=blob.source, stage=stage)
            log.error(f"Blob failed at {stage}: {e}", exc_info=True)
            outcome.error = {"source": blob.source, "stage": stage, "error": str(e)}
        return outcome

    def _admit(
        self, outcome: _BlobOutcome, index: AcceptedEventIndex, result: PipelineRunResult
    ) -> Optional[ValidatedRecord]:
        """Tally one outcome and offer it to the index; returns the admitted record."""
        if outcome.error is not None:
            result.failed += 1
            result.errors.append(outcome.error)
            return None

        if outcome.candidate is None:
            self._reject(result, NOT_EXTRACTED)
            return None

        result.extracted += 1
        record = outcome.validated
        if record is None:
            self._reject(result, outcome.validation.rejection_code or "invalid")
            return None

        log = with_context(logger, run_id=result.run_id, source_id=outcome.blob.source, stage="dedupe")
        try:
            admission: AdmissionResult = index.try_admit(record)
        except Exception as e:
            log.error(f"Blob failed at dedupe: {e}", exc_info=True)
            result.failed += 1
            result.errors.append({"source": outcome.blob.source, "stage": "dedupe", "error": str(e)})
            return None

        if admission.admitted:
            return record

        if admission.reason == AcceptedEventIndex.DUPLICATE:
            result.duplicates += 1
            log.info(f"Duplicate of {admission.duplicate_of}: '{record.name}'")
        else:
            result.skipped += 1
            log.info(f"Output cap reached, dropping '{record.name}'")
        return None

    def _geocode(
        self, record: ValidatedRecord, blob: RawBlob, run_id: str
    ) -> Tuple[Optional[GeocodedRecord], Optional[Dict[str, Any]]]:
        """
        Geocode one admitted record. Never raises; returns (record, error).

        A record that fails here stays in the run's index: it still holds its
        cap slot and still shadows later duplicates. In concurrent mode every
        admission is settled before geocoding starts, so withdrawing it then
        could not re-admit a later duplicate, and the two modes would diverge.
        """
        try:
            recovered = self.geocoder.geocode(record.address)
            geocoded = GeocodedRecord.from_validated(
                record, recovered.value, GeocodeProvenance(recovered.method)
            )
            return geocoded, None
        except Exception as e:
            log = with_context(logger, run_id=run_id, source_id=blob.source, stage="geocode")
            log.error(f"Blob failed at geocode: {e}", exc_info=True)
            return None, {"source": blob.source, "stage": "geocode", "error": str(e)}

    @staticmethod
    def _collect(
        result: PipelineRunResult,
        record: Optional[GeocodedRecord],
        error: Optional[Dict[str, Any]],
    ) -> None:
        if error is not None:
            result.failed += 1
            result.errors.append(error)
        elif record is not None:
            result.records.append(record)

    # ========================================================================
    # HELPERS
    # ========================================================================

    @staticmethod
    def _reject(result: PipelineRunResult, reason: str) -> None:
        result.rejected += 1
        result.rejection_reasons[reason] = result.rejection_reasons.get(reason, 0) + 1

    @staticmethod
    def _coerce_blob(blob: BlobInput) -> RawBlob:
        if isinstance(blob, RawBlob):
            return blob
        return RawBlob(text=str(blob))

    @staticmethod
    def _final_status(result: PipelineRunResult) -> PipelineStatus:
        if result.failed and result.failed >= result.total_blobs:
            return PipelineStatus.FAILED
        if result.failed:
            return PipelineStatus.PARTIAL_SUCCESS
        return PipelineStatus.SUCCESS


# ============================================================================
# FACTORIES
# ============================================================================


def create_orchestrator_from_config(
    config: Dict[str, Any],
    settings: Optional[Settings] = None,
    llm_client: Optional[BaseLLMClient] = None,
    today: Optional[Callable[[], date]] = None,
) -> PipelineOrchestrator:
    """
    Build a fully wired orchestrator from a pipeline config dict.

    Args:
        config: Parsed pipeline.yaml
        settings: Settings (defaults to the cached instance)
        llm_client: Completion client; built from settings when omitted
        today: Clock for relative dates, injectable for tests
    """
    settings = settings or get_settings()
    orchestrator_config = config.get("orchestrator", {}) or {}
    extraction_config = config.get("extraction", {}) or {}
    dedup_config = config.get("deduplication", {}) or {}

    if llm_client is None and extraction_config.get("use_llm", True):
        llm_client = create_llm_client(settings)

    return PipelineOrchestrator(
        extractor=create_field_extractor_from_config(
            extraction_config,
            llm_client=llm_client,
            today=today,
            city_context=settings.city_context,
        ),
        validator=create_validator_from_config(config.get("validation", {}) or {}, today=today),
        deduplicator=get_deduplicator(
            dedup_config.get("strategy", "rules"),
            fuzzy_threshold=float(dedup_config.get("fuzzy_threshold", 0.85)),
        ),
        geocoder=create_geocoder_from_config(config.get("geocoding", {}) or {}, settings),
        max_records=int(orchestrator_config.get("max_records", settings.PIPELINE_MAX_RECORDS)),
        max_workers=int(orchestrator_config.get("max_workers", settings.PIPELINE_MAX_WORKERS)),
    )


def load_orchestrator_from_config(
    config_path: Optional[Union[str, Path]] = None,
    **kwargs,
) -> PipelineOrchestrator:
    """
    Factory function to create orchestrator from YAML config.

    Args:
        config_path: Path to pipeline.yaml (defaults to the packaged one)

    Returns:
        Configured PipelineOrchestrator
    """
    if config_path is None:
        config = Config.load_pipeline_config()
    else:
        config = load_yaml_config(config_path)
    return create_orchestrator_from_config(config, **kwargs)
