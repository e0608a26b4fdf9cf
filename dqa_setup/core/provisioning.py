"""Metadata provisioning for a new assessment.

The engine turns a :class:`ProvisioningPlan` into remote objects. Data
elements are handled before datasets because datasets reference data element
ids. For every template the engine first looks for a reusable object, then
creates one. A failed create is followed by a lookup on the template code and,
when nothing is found, a single retry with a fresh code. Templates that still
fail are reported and the run carries on with the rest of the batch.

Bulk mode sends all new objects in one metadata import instead. The remote
import report is passed through as it is; there is no per-object retry in that
path.
"""
from __future__ import annotations

import dataclasses
import logging
from typing import Any

from dqa_setup.core.existing_metadata import ExistingMetadataIndex
from dqa_setup.core.identifiers import IdGenerator, RandomIdGenerator
from dqa_setup.core.templates import DATA_ELEMENT_CODE_LENGTH, DEFAULT_CATEGORY_COMBO_ID, ProvisioningPlan, build_plan
from dqa_setup.core.validation import validate_template
from dqa_setup.domain import (
    DatasetTemplate,
    DatasetType,
    DataElementTemplate,
    JobStatus,
    MetadataKind,
    ProvisionedObject,
    ProvisioningJob,
    ProvisioningRequest,
    ProvisionStatus,
    Severity,
    SubmissionMode,
)
from dqa_setup.infrastructure.metadata import BulkImportReport, MetadataClient, MetadataClientError

logger = logging.getLogger(__name__)

STEP_PREPARE = 1
STEP_EXISTING = 2
STEP_DATA_ELEMENTS = 3
STEP_DATASETS = 4
STEP_IMPORT = 5
STEP_FINALIZE = 6

_LOG_LEVELS = {
    Severity.INFO: logging.INFO,
    Severity.SUCCESS: logging.INFO,
    Severity.WARNING: logging.WARNING,
    Severity.ERROR: logging.ERROR,
}


class ProvisioningCancelled(Exception):
    """Raised internally when the caller abandons a run between templates."""


class ProvisioningEngine:
    def __init__(
        self,
        client: MetadataClient,
        ids: IdGenerator | None = None,
        *,
        default_category_combo: str = DEFAULT_CATEGORY_COMBO_ID,
    ) -> None:
        self._client = client
        self._ids = ids or RandomIdGenerator()
        self._default_category_combo = default_category_combo

    # ------------------------------------------------------------------
    # helpers
    # ------------------------------------------------------------------
    @staticmethod
    def _emit(job: ProvisioningJob, message: str, severity: Severity = Severity.INFO) -> None:
        job.emit(message, severity)
        logger.log(_LOG_LEVELS[severity], "[%s] %s", job.job_id, message)

    @staticmethod
    def _checkpoint(job: ProvisioningJob) -> None:
        if job.cancelled:
            raise ProvisioningCancelled()

    @staticmethod
    def _record(
        template: DataElementTemplate | DatasetTemplate,
        kind: MetadataKind,
        status: ProvisionStatus,
        *,
        remote_id: str | None = None,
        error: str | None = None,
    ) -> ProvisionedObject:
        return ProvisionedObject(
            template_ref=template.uid,
            kind=kind,
            dataset_type=template.dataset_type,
            name=template.name,
            code=template.code,
            status=status,
            remote_id=remote_id,
            error=error,
        )

    @staticmethod
    def _reuse_label(template: DataElementTemplate | DatasetTemplate) -> str:
        if isinstance(template, DatasetTemplate):
            return template.dataset_type.label
        return template.label or template.name

    def _find_reusable(
        self,
        index: ExistingMetadataIndex,
        kind: MetadataKind,
        template: DataElementTemplate | DatasetTemplate,
        plan: ProvisioningPlan,
        claimed: set[str],
    ):
        existing = index.find_by_label(kind, self._reuse_label(template), plan.assessment_name, exclude=claimed)
        if existing is not None:
            # one remote object backs at most one template per run
            claimed.add(existing.id)
        return existing

    def _load_existing(self, job: ProvisioningJob, index: ExistingMetadataIndex) -> None:
        self._emit(job, "Checking existing metadata...")
        try:
            loaded = index.load_snapshot([MetadataKind.DATA_ELEMENT, MetadataKind.DATASET])
        except MetadataClientError as exc:
            self._emit(job, f"Could not fetch existing metadata: {exc}", Severity.WARNING)
            return
        self._emit(
            job,
            f"Found existing metadata: {loaded[MetadataKind.DATA_ELEMENT]} data elements, "
            f"{loaded[MetadataKind.DATASET]} datasets",
            Severity.SUCCESS,
        )

    # ------------------------------------------------------------------
    # per-object submission
    # ------------------------------------------------------------------
    def _create_with_retry(
        self,
        job: ProvisioningJob,
        index: ExistingMetadataIndex,
        kind: MetadataKind,
        template: DataElementTemplate | DatasetTemplate,
        payload: dict[str, Any],
    ) -> ProvisionedObject:
        validate_template(template)
        try:
            remote_id = self._client.create(kind.value, payload)
        except MetadataClientError as exc:
            self._emit(job, f"Failed to create {template.name}: {exc}", Severity.WARNING)
        else:
            self._emit(job, f"Created {template.name} ({template.code})", Severity.SUCCESS)
            return self._record(template, kind, ProvisionStatus.CREATED, remote_id=remote_id)

        try:
            existing = index.find_by_code(kind, template.code)
        except MetadataClientError as exc:
            self._emit(job, f"Lookup by code {template.code} failed: {exc}", Severity.WARNING)
            existing = None
        if existing is not None:
            self._emit(job, f"Using existing {existing.name or existing.id} with code {template.code}", Severity.SUCCESS)
            return self._record(template, kind, ProvisionStatus.REUSED, remote_id=existing.id)

        prefix = f"{template.dataset_type.abbrev}_" if kind is MetadataKind.DATA_ELEMENT else ""
        length = DATA_ELEMENT_CODE_LENGTH if kind is MetadataKind.DATA_ELEMENT else len(template.code)
        retried = dataclasses.replace(template, code=self._ids.new_code(prefix, length))
        payload = {**payload, "code": retried.code}
        try:
            remote_id = self._client.create(kind.value, payload)
        except MetadataClientError as exc:
            self._emit(job, f"Failed to create {template.name} after retry: {exc}", Severity.ERROR)
            return self._record(retried, kind, ProvisionStatus.FAILED, error=str(exc))
        self._emit(job, f"Created {retried.name} with new code {retried.code}", Severity.SUCCESS)
        return self._record(retried, kind, ProvisionStatus.CREATED, remote_id=remote_id)

    def _provision_data_elements(
        self,
        job: ProvisioningJob,
        index: ExistingMetadataIndex,
        plan: ProvisioningPlan,
        reuse_existing: bool,
        mode: SubmissionMode,
    ) -> dict[DatasetType, list[tuple[DataElementTemplate, ProvisionedObject | None]]]:
        resolved: dict[DatasetType, list[tuple[DataElementTemplate, ProvisionedObject | None]]] = {}
        kind = MetadataKind.DATA_ELEMENT
        claimed: set[str] = set()
        for dataset_type, templates in plan.data_elements.items():
            self._emit(job, f"Creating {dataset_type.label} data elements ({len(templates)})...")
            entries: list[tuple[DataElementTemplate, ProvisionedObject | None]] = []
            for template in templates:
                self._checkpoint(job)
                existing = self._find_reusable(index, kind, template, plan, claimed) if reuse_existing else None
                if existing is not None:
                    self._emit(job, f"Reusing {existing.name}")
                    outcome = self._record(template, kind, ProvisionStatus.REUSED, remote_id=existing.id)
                elif mode is SubmissionMode.BULK:
                    validate_template(template)
                    outcome = None
                else:
                    outcome = self._create_with_retry(job, index, kind, template, template.to_payload())
                if outcome is not None:
                    job.data_elements.append(outcome)
                entries.append((template, outcome))
            resolved[dataset_type] = entries
        return resolved

    @staticmethod
    def _element_ids(entries: list[tuple[DataElementTemplate, ProvisionedObject | None]]) -> list[str]:
        ids: list[str] = []
        for template, outcome in entries:
            if outcome is None:
                ids.append(template.uid)
            elif outcome.status is not ProvisionStatus.FAILED and outcome.remote_id:
                ids.append(outcome.remote_id)
        return ids

    def _provision_datasets(
        self,
        job: ProvisioningJob,
        index: ExistingMetadataIndex,
        plan: ProvisioningPlan,
        resolved: dict[DatasetType, list[tuple[DataElementTemplate, ProvisionedObject | None]]],
        reuse_existing: bool,
        mode: SubmissionMode,
    ) -> list[tuple[DatasetTemplate, dict[str, Any]]]:
        pending: list[tuple[DatasetTemplate, dict[str, Any]]] = []
        kind = MetadataKind.DATASET
        claimed: set[str] = set()
        for dataset_type, template in plan.datasets.items():
            self._checkpoint(job)
            entries = resolved.get(dataset_type, [])
            element_ids = self._element_ids(entries)
            missing = len(entries) - len(element_ids)
            if missing:
                self._emit(
                    job,
                    f"{template.name}: {missing} data element(s) failed and are left out",
                    Severity.WARNING,
                )

            existing = self._find_reusable(index, kind, template, plan, claimed) if reuse_existing else None
            if existing is not None:
                self._emit(job, f"Reusing {existing.name}")
                job.datasets.append(self._record(template, kind, ProvisionStatus.REUSED, remote_id=existing.id))
                continue

            payload = template.to_payload(element_ids)
            if mode is SubmissionMode.BULK:
                validate_template(template)
                pending.append((template, payload))
                continue
            outcome = self._create_with_retry(job, index, kind, template, payload)
            job.datasets.append(outcome)
            if outcome.status is not ProvisionStatus.FAILED:
                self._emit(job, f"{template.name} holds {len(element_ids)} data elements")
        return pending

    # ------------------------------------------------------------------
    # bulk submission
    # ------------------------------------------------------------------
    def _bulk_import(
        self,
        job: ProvisioningJob,
        resolved: dict[DatasetType, list[tuple[DataElementTemplate, ProvisionedObject | None]]],
        pending_datasets: list[tuple[DatasetTemplate, dict[str, Any]]],
    ) -> None:
        new_elements = [template for entries in resolved.values() for template, outcome in entries if outcome is None]
        payload: dict[str, list[dict[str, Any]]] = {
            MetadataKind.DATA_ELEMENT.value: [template.to_payload() for template in new_elements],
            MetadataKind.DATASET.value: [dataset_payload for _, dataset_payload in pending_datasets],
        }
        total = len(new_elements) + len(pending_datasets)
        self._emit(job, f"Payload summary: {total} new metadata items to create")
        if total == 0:
            self._emit(job, "No new metadata to import - all items already exist")
            return

        try:
            report = self._client.bulk_import(payload)
        except MetadataClientError as exc:
            report = BulkImportReport(status="ERROR", errors=[str(exc)])

        job.import_report = report.to_dict()
        self._emit(
            job,
            f"Import {report.status}: {report.created} created, {report.updated} updated, {report.ignored} ignored",
            Severity.SUCCESS if report.ok and not report.errors else Severity.WARNING,
        )
        for message in report.errors:
            self._emit(job, message, Severity.ERROR)

        failed_ids = set(report.failed_ids)
        error_text = "; ".join(report.errors) or f"import status {report.status}"

        def outcome_for(template, kind: MetadataKind) -> ProvisionedObject:
            if not report.ok or template.uid in failed_ids:
                return self._record(template, kind, ProvisionStatus.FAILED, error=error_text)
            return self._record(template, kind, ProvisionStatus.CREATED, remote_id=template.uid)

        for template in new_elements:
            job.data_elements.append(outcome_for(template, MetadataKind.DATA_ELEMENT))
        for template, _ in pending_datasets:
            job.datasets.append(outcome_for(template, MetadataKind.DATASET))

    # ------------------------------------------------------------------
    # public API
    # ------------------------------------------------------------------
    def provision(
        self,
        plan: ProvisioningPlan,
        job: ProvisioningJob,
        *,
        reuse_existing: bool = True,
        mode: SubmissionMode = SubmissionMode.PER_OBJECT,
    ) -> ProvisioningJob:
        """Create or reuse every object in ``plan``, recording outcomes on ``job``."""

        job.status = JobStatus.RUNNING
        job.category_combo = plan.category_combo
        index = ExistingMetadataIndex(self._client)
        try:
            job.advance(STEP_EXISTING)
            if reuse_existing:
                self._load_existing(job, index)
            else:
                self._emit(job, "Reuse disabled; every template will be created")

            job.advance(STEP_DATA_ELEMENTS)
            resolved = self._provision_data_elements(job, index, plan, reuse_existing, mode)

            job.advance(STEP_DATASETS)
            self._emit(job, "Creating datasets...")
            pending = self._provision_datasets(job, index, plan, resolved, reuse_existing, mode)

            job.advance(STEP_IMPORT)
            if mode is SubmissionMode.BULK:
                self._emit(job, "Importing metadata...")
                self._bulk_import(job, resolved, pending)
        except ProvisioningCancelled:
            job.status = JobStatus.CANCELLED
            self._emit(job, "Provisioning cancelled; objects created so far were kept", Severity.WARNING)
            return job
        except Exception as exc:
            job.status = JobStatus.FAILED
            self._emit(job, f"Provisioning aborted: {exc}", Severity.ERROR)
            raise

        job.advance(STEP_FINALIZE)
        counts = job.counts()
        self._emit(
            job,
            f"Provisioning finished: {counts['created']} created, {counts['reused']} reused, {counts['failed']} failed",
            Severity.WARNING if counts["failed"] else Severity.SUCCESS,
        )
        job.status = JobStatus.COMPLETED
        return job

    def run(self, request: ProvisioningRequest, job: ProvisioningJob) -> ProvisioningJob:
        """Build templates for ``request`` and provision them."""

        job.advance(STEP_PREPARE)
        self._emit(job, f"Starting metadata creation for: {request.assessment_name}")
        self._emit(
            job,
            f"Organisation units: {len(request.org_unit_ids)}, source data elements: {len(request.source_elements)}",
        )
        if not request.source_elements:
            self._emit(job, "No source data elements selected; using the generic indicator set", Severity.WARNING)
        plan = build_plan(request, self._ids, self._default_category_combo)
        self._emit(job, f"Using category combination {plan.category_combo}")
        self._emit(
            job,
            f"Prepared {plan.data_element_count()} data element and {len(plan.datasets)} dataset templates",
        )
        return self.provision(plan, job, reuse_existing=request.reuse_existing, mode=request.mode)
