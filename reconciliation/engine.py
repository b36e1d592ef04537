"""Synchronization engine: invoices in, ledger movements out.

Exposes:
- Synchronizer.sync_one(invoice_id, options) -> SyncResult
- Synchronizer.sync_many(invoice_ids, options) -> BulkSyncSummary
- Synchronizer.sync_all_existing(options) -> BulkSyncSummary
- Synchronizer.preview(invoice_id, options) -> dict

Pipeline per invoice:
    load -> validate -> classify -> policy skip -> linkage check (unless
    forced) -> resolve VAT code -> materialize -> persist

Invoices are processed strictly sequentially in input order. Every item is
committed on its own; a failure degrades that item to an error result and
the batch continues.
"""

import time
import uuid
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, Iterable, List, Optional

from core.config import Settings
from core.errors import (
    AlreadyLinkedError,
    ErrorKind,
    FieldError,
    InvoiceNotFoundError,
    ReconciliationError,
    ValidationError,
)
from core.models.canonical import Invoice, Movement, VatCode
from core.observability.logging import get_logger, with_correlation
from core.observability.metrics import SyncStatsCollector
from storage.repository import InvoiceFilter, LedgerRepository, MovementFilter

from reconciliation.classifier import Classification, classify
from reconciliation.linkage import find_linked_movement
from reconciliation.materializer import (
    MovementDefaults,
    MovementOverrides,
    build_analysis,
    extract_vat_code_id,
    materialize,
    signed_amount,
    validate,
)


logger = get_logger(__name__)

ALREADY_LINKED_REASON = "already linked"


# =============================================================================
# Configuration & Data Structures
# =============================================================================

class SyncOutcome(str, Enum):
    CREATED = "created"
    SKIPPED = "skipped"
    ERROR = "error"


class SkipReason(str, Enum):
    POLICY = "policy"
    ALREADY_LINKED = "already_linked"


@dataclass
class SyncOptions:
    """Per-call options shared by single and bulk synchronization."""
    force_create: bool = False
    core_id: Optional[str] = None
    status_id: Optional[str] = None
    reason_id: Optional[str] = None
    additional_notes: Optional[str] = None

    def overrides(self) -> MovementOverrides:
        return MovementOverrides(
            core_id=self.core_id,
            status_id=self.status_id,
            reason_id=self.reason_id,
            additional_notes=self.additional_notes,
        )


@dataclass(frozen=True)
class SyncConfig:
    """Engine configuration; holds no mutable state."""
    defaults: MovementDefaults
    page_size: int = 100
    use_linkage_heuristic: bool = True
    strict_vat_codes: bool = False

    @classmethod
    def from_settings(cls, settings: Settings) -> "SyncConfig":
        return cls(
            defaults=MovementDefaults(
                status_id=settings.default_status_id,
                income_reason_id=settings.default_income_reason_id,
                expense_reason_id=settings.default_expense_reason_id,
            ),
            page_size=settings.sync_page_size,
            use_linkage_heuristic=settings.linkage_heuristic_enabled,
            strict_vat_codes=settings.strict_vat_codes,
        )


@dataclass
class SyncResult:
    """Outcome of synchronizing one invoice. Never persisted."""
    invoice_id: str
    outcome: SyncOutcome
    movement_id: Optional[str] = None
    reason: Optional[str] = None
    error_kind: Optional[ErrorKind] = None
    field_errors: List[FieldError] = field(default_factory=list)
    existing_movement_id: Optional[str] = None
    skip_reason: Optional[SkipReason] = None
    classification: Optional[Classification] = None
    movement: Optional[Movement] = None
    analysis: Optional[Dict[str, Any]] = None

    @property
    def is_error(self) -> bool:
        return self.outcome is SyncOutcome.ERROR

    def to_dict(self) -> Dict[str, Any]:
        return {
            "invoice_id": self.invoice_id,
            "outcome": self.outcome.value,
            "movement_id": self.movement_id,
            "reason": self.reason,
            "error_kind": self.error_kind.value if self.error_kind else None,
            "field_errors": [e.to_dict() for e in self.field_errors],
            "existing_movement_id": self.existing_movement_id,
            "skip_reason": self.skip_reason.value if self.skip_reason else None,
            "classification": self.classification.to_dict() if self.classification else None,
            "movement": self.movement.model_dump(mode="json") if self.movement else None,
            "analysis": self.analysis,
        }


@dataclass
class BulkSyncSummary:
    """Aggregate of a bulk run, results in input order."""
    results: List[SyncResult] = field(default_factory=list)
    sync_run_id: Optional[str] = None

    @property
    def total(self) -> int:
        return len(self.results)

    @property
    def successful(self) -> int:
        return sum(1 for r in self.results if r.outcome is SyncOutcome.CREATED)

    @property
    def skipped(self) -> int:
        return sum(1 for r in self.results if r.outcome is SyncOutcome.SKIPPED)

    @property
    def errors(self) -> int:
        return sum(1 for r in self.results if r.outcome is SyncOutcome.ERROR)

    @property
    def error_entries(self) -> List[Dict[str, Any]]:
        return [
            {
                "invoice_id": r.invoice_id,
                "error_kind": r.error_kind.value if r.error_kind else None,
                "reason": r.reason,
                "field_errors": [e.to_dict() for e in r.field_errors],
            }
            for r in self.results if r.is_error
        ]

    def to_dict(self) -> Dict[str, Any]:
        return {
            "summary": {
                "total": self.total,
                "successful": self.successful,
                "skipped": self.skipped,
                "errors": self.errors,
            },
            "results": [r.to_dict() for r in self.results],
            "errors": self.error_entries,
        }


# =============================================================================
# Synchronizer
# =============================================================================

class Synchronizer:
    """Turns invoices into ledger movements without ever duplicating one.

    Usage:
        synchronizer = Synchronizer(repository, SyncConfig.from_settings(settings))
        result = synchronizer.sync_one("inv-001", SyncOptions())
    """

    def __init__(
        self,
        repository: LedgerRepository,
        config: SyncConfig,
        stats: Optional[SyncStatsCollector] = None,
    ):
        self.repository = repository
        self.config = config
        self.stats = stats or SyncStatsCollector()

    # =========================================================================
    # Single invoice
    # =========================================================================

    def sync_one(self, invoice_id: str, options: Optional[SyncOptions] = None) -> SyncResult:
        """Synchronize one invoice. Never raises ReconciliationError."""
        options = options or SyncOptions()
        start = time.time()

        with with_correlation(invoice_id=invoice_id):
            try:
                result = self._sync(invoice_id, options)
            except AlreadyLinkedError as e:
                # Lost a race against a concurrent writer; the constraint caught it
                result = self._already_linked(invoice_id, e.existing_movement_id)
            except ValidationError as e:
                result = SyncResult(
                    invoice_id=invoice_id,
                    outcome=SyncOutcome.ERROR,
                    reason=e.message,
                    error_kind=e.kind,
                    field_errors=e.field_errors,
                )
            except ReconciliationError as e:
                result = SyncResult(
                    invoice_id=invoice_id,
                    outcome=SyncOutcome.ERROR,
                    reason=e.message,
                    error_kind=e.kind,
                )

            self._record(result)
            self.stats.record_processing_time("sync_one", (time.time() - start) * 1000)

        return result

    def _sync(self, invoice_id: str, options: SyncOptions) -> SyncResult:
        invoice = self._load(invoice_id)

        with with_correlation(company_id=invoice.company_id):
            validation = validate(invoice, strict_vat_codes=self.config.strict_vat_codes)
            if not validation.is_valid:
                raise ValidationError(invoice_id, validation.errors)

            classification = classify(invoice)
            if classification.should_skip:
                return SyncResult(
                    invoice_id=invoice_id,
                    outcome=SyncOutcome.SKIPPED,
                    reason=classification.reason,
                    skip_reason=SkipReason.POLICY,
                    classification=classification,
                    analysis=build_analysis(invoice, classification, warnings=validation.warnings),
                )

            if not options.force_create:
                linked = self._find_linked(invoice, classification)
                if linked is not None:
                    return self._already_linked(invoice_id, linked.id, classification)

            warnings = list(validation.warnings)
            vat_code = self._resolve_vat_code(invoice, warnings)

            draft = materialize(
                invoice,
                classification,
                options.overrides(),
                self.config.defaults,
                vat_code=vat_code,
                force_create=options.force_create,
            )
            movement = self.repository.create_movement(draft)

            logger.info(
                f"Created {movement.type.value} movement {movement.id} for invoice {invoice_id}",
                extra_fields={
                    "movement_id": movement.id,
                    "amount": str(movement.amount),
                    "forced": movement.is_forced,
                },
            )

            return SyncResult(
                invoice_id=invoice_id,
                outcome=SyncOutcome.CREATED,
                movement_id=movement.id,
                classification=classification,
                movement=movement,
                analysis=build_analysis(invoice, classification, draft, warnings),
            )

    # =========================================================================
    # Bulk
    # =========================================================================

    def sync_many(self, invoice_ids: Iterable[str], options: Optional[SyncOptions] = None) -> BulkSyncSummary:
        """Synchronize invoices one after another in input order."""
        return self._run(list(invoice_ids), options or SyncOptions(), "sync_many")

    def sync_all_existing(self, options: Optional[SyncOptions] = None) -> BulkSyncSummary:
        """Synchronize every invoice in the repository; safe to re-run.

        Only ids are listed here; each invoice is loaded by sync_one, so a row
        that no longer parses fails its own item instead of the run.

        Raises:
            RepositoryError: If the invoice listing itself fails
        """
        page_size = max(self.config.page_size, 1)
        invoice_ids: List[str] = []
        page = 1
        while True:
            page_ids = self.repository.get_invoice_ids(InvoiceFilter(page=page, page_size=page_size))
            invoice_ids.extend(page_ids)
            if len(page_ids) < page_size:
                break
            page += 1

        return self._run(invoice_ids, options or SyncOptions(), "sync_all_existing")

    def _run(self, invoice_ids: List[str], options: SyncOptions, operation: str) -> BulkSyncSummary:
        sync_run_id = str(uuid.uuid4())
        start = time.time()
        summary = BulkSyncSummary(sync_run_id=sync_run_id)

        with with_correlation(sync_run_id=sync_run_id, operation=operation):
            self.stats.record_run_started(operation)
            logger.info(f"Starting {operation} over {len(invoice_ids)} invoices")

            for invoice_id in invoice_ids:
                summary.results.append(self.sync_one(invoice_id, options))

            duration_ms = (time.time() - start) * 1000
            self.stats.record_run_completed(operation, duration_ms)
            logger.info(
                f"Finished {operation}: {summary.successful} created, "
                f"{summary.skipped} skipped, {summary.errors} errors",
                extra_fields={"duration_ms": round(duration_ms, 1)},
            )

        return summary

    # =========================================================================
    # Preview
    # =========================================================================

    def preview(self, invoice_id: str, options: Optional[SyncOptions] = None) -> Dict[str, Any]:
        """What sync_one would do, without writing anything.

        Raises:
            InvoiceNotFoundError: If the invoice does not exist
            RepositoryError: On backend failure
        """
        options = options or SyncOptions()
        invoice = self._load(invoice_id)
        validation = validate(invoice, strict_vat_codes=self.config.strict_vat_codes)

        preview: Dict[str, Any] = {
            "invoice_id": invoice_id,
            "validation": validation.to_dict(),
            "classification": None,
            "linked_movement_id": None,
            "would_create": False,
            "movement": None,
            "analysis": None,
        }
        if not validation.is_valid:
            return preview

        classification = classify(invoice)
        preview["classification"] = classification.to_dict()
        if classification.should_skip:
            preview["analysis"] = build_analysis(invoice, classification, warnings=validation.warnings)
            return preview

        linked = self._find_linked(invoice, classification)
        if linked is not None:
            preview["linked_movement_id"] = linked.id
            if not options.force_create:
                preview["analysis"] = build_analysis(invoice, classification, warnings=validation.warnings)
                return preview

        warnings = list(validation.warnings)
        vat_code = self._resolve_vat_code(invoice, warnings)
        draft = materialize(
            invoice,
            classification,
            options.overrides(),
            self.config.defaults,
            vat_code=vat_code,
            force_create=options.force_create,
        )
        preview["would_create"] = True
        preview["movement"] = draft.model_dump(mode="json")
        preview["analysis"] = build_analysis(invoice, classification, draft, warnings)
        return preview

    # =========================================================================
    # Helpers
    # =========================================================================

    def _load(self, invoice_id: str) -> Invoice:
        invoice = self.repository.get_invoice_by_id(invoice_id)
        if invoice is None:
            raise InvoiceNotFoundError(invoice_id)
        return invoice

    def _find_linked(self, invoice: Invoice, classification: Classification) -> Optional[Movement]:
        candidates = self.repository.get_movements(MovementFilter(source_invoice_id=invoice.id))
        if not candidates and self.config.use_linkage_heuristic and invoice.issue_date:
            candidates = self.repository.get_movements(MovementFilter(
                company_id=invoice.company_id,
                type=classification.direction,
                insert_date=invoice.issue_date,
            ))

        return find_linked_movement(
            invoice,
            candidates,
            expected_amount=signed_amount(invoice, classification),
            use_heuristic=self.config.use_linkage_heuristic,
        )

    def _resolve_vat_code(self, invoice: Invoice, warnings: List[str]) -> Optional[VatCode]:
        vat_code_id = extract_vat_code_id(invoice)
        if vat_code_id is None:
            return None
        vat_code = self.repository.get_vat_code(vat_code_id)
        if vat_code is None:
            warnings.append(f"VAT code {vat_code_id} not found; net/VAT split omitted")
            logger.warning(f"Invoice {invoice.id} references unknown VAT code {vat_code_id}")
        return vat_code

    def _already_linked(
        self,
        invoice_id: str,
        existing_movement_id: Optional[str],
        classification: Optional[Classification] = None,
    ) -> SyncResult:
        return SyncResult(
            invoice_id=invoice_id,
            outcome=SyncOutcome.SKIPPED,
            reason=ALREADY_LINKED_REASON,
            existing_movement_id=existing_movement_id,
            skip_reason=SkipReason.ALREADY_LINKED,
            classification=classification,
        )

    def _record(self, result: SyncResult) -> None:
        if result.outcome is SyncOutcome.CREATED:
            self.stats.record_created()
        elif result.outcome is SyncOutcome.SKIPPED:
            self.stats.record_skipped(result.skip_reason.value)
            logger.info(
                f"Skipped invoice {result.invoice_id}: {result.reason}",
                extra_fields={"skip_reason": result.skip_reason.value},
            )
        else:
            self.stats.record_error(result.error_kind.value)
            logger.warning(
                f"Failed invoice {result.invoice_id}: {result.reason}",
                extra_fields={"error_kind": result.error_kind.value},
            )


def build_synchronizer(
    repository: LedgerRepository,
    settings: Settings,
    stats: Optional[SyncStatsCollector] = None,
) -> Synchronizer:
    """Wire a Synchronizer from settings."""
    return Synchronizer(repository, SyncConfig.from_settings(settings), stats=stats)
