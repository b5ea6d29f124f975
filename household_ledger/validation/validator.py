"""
Two-Stage Candidate Validation

Every candidate passes through here before enrichment and confirmation.

STAGE 1 - SCHEMA VALIDATION:
- Amount present, numeric, finite and greater than zero
- Currency in the closed set (USD, UYU)
- Category in the closed set
- Payer and date present

STAGE 2 - SEMANTIC VALIDATION:
- "Adelanto" / "Reembolso" must name a recognized cousin
- Future dates beyond the tolerance
- Unusually large amounts
- Unknown payer names (accepted, but flagged)
- Possible duplicates of already stored transactions

IMPORTANT: Validation NEVER silently fixes issues. Malformed input is
rejected at this boundary, it is not coerced into the ledger.
"""

from datetime import date, timedelta
from decimal import Decimal
from typing import Callable, Optional

import structlog

from household_ledger.config import LedgerSettings, get_settings
from household_ledger.ledger.payers import PayerDirectory
from household_ledger.ledger.rules import COUNTERPARTY_ONLY_CATEGORIES
from household_ledger.models.transaction import (
    Category,
    Currency,
    PayerKind,
    TransactionCandidate,
    ValidationIssue,
    ValidationResult,
)
from household_ledger.services.storage import TransactionStorageInterface

logger = structlog.get_logger(__name__)


class TransactionValidator:
    """
    Validates transaction candidates through a two-stage pipeline.

    Stage 1 never needs storage; stage 2 uses it only for duplicate checks.
    """

    def __init__(
        self,
        payer_directory: PayerDirectory,
        transaction_storage: Optional[TransactionStorageInterface] = None,
        settings: Optional[LedgerSettings] = None,
        today: Optional[Callable[[], date]] = None,
    ):
        self._payers = payer_directory
        self._storage = transaction_storage
        self._settings = settings or get_settings().ledger
        self._today = today or date.today

    def _validate_schema(
        self,
        candidate: TransactionCandidate,
    ) -> tuple[bool, list[ValidationIssue]]:
        """Stage 1. Returns (is_valid, issues)."""
        issues = []

        amount = candidate.original_amount
        if amount is None:
            issues.append(ValidationIssue(
                field="original_amount",
                issue_type="missing",
                message="Amount is required but was not provided",
                severity="error",
                suggested_fix="Enter the amount that was paid or received",
            ))
        elif not amount.is_finite() or amount <= 0:
            issues.append(ValidationIssue(
                field="original_amount",
                issue_type="invalid_value",
                message=f"Amount must be a positive number (got {amount})",
                severity="error",
                suggested_fix="Amounts are always positive; the category gives the direction",
            ))

        if candidate.resolved_currency is None:
            issues.append(ValidationIssue(
                field="original_currency",
                issue_type="missing" if not candidate.original_currency else "invalid_value",
                message=(
                    f"Currency must be one of {', '.join(c.value for c in Currency)}"
                    + (f" (got {candidate.original_currency!r})" if candidate.original_currency else "")
                ),
                severity="error",
                suggested_fix="Choose USD or UYU",
            ))

        if candidate.resolved_category is None:
            issues.append(ValidationIssue(
                field="category",
                issue_type="missing" if not candidate.category else "invalid_value",
                message=(
                    f"Unknown category: {candidate.category!r}"
                    if candidate.category
                    else "Category is required"
                ),
                severity="error",
                suggested_fix=f"Pick one of: {', '.join(c.value for c in Category)}",
            ))

        if not candidate.paid_by:
            issues.append(ValidationIssue(
                field="paid_by",
                issue_type="missing",
                message="Nobody is named as payer",
                severity="error",
                suggested_fix="Say who paid, e.g. a cousin, Caja or Cliente",
            ))

        if candidate.transaction_date is None:
            issues.append(ValidationIssue(
                field="transaction_date",
                issue_type="missing",
                message="Date is required",
                severity="error",
                suggested_fix="Enter the date of the movement",
            ))

        if candidate.exchange_rate is not None and (
            not candidate.exchange_rate.is_finite() or candidate.exchange_rate <= 0
        ):
            issues.append(ValidationIssue(
                field="exchange_rate",
                issue_type="invalid_value",
                message=f"Stated exchange rate must be positive (got {candidate.exchange_rate})",
                severity="error",
                suggested_fix="Leave the rate empty to use the looked-up rate",
            ))

        is_valid = not any(issue.severity == "error" for issue in issues)
        return is_valid, issues

    def _validate_semantic(
        self,
        candidate: TransactionCandidate,
    ) -> tuple[bool, list[ValidationIssue]]:
        """Stage 2. Assumes stage 1 passed."""
        issues = []
        category = candidate.resolved_category
        payer = self._payers.resolve(candidate.paid_by)

        if category in COUNTERPARTY_ONLY_CATEGORIES and payer.kind is not PayerKind.COUNTERPARTY:
            issues.append(ValidationIssue(
                field="paid_by",
                issue_type="invalid_combination",
                message=f"'{category.value}' must name a cousin, not {payer.name!r}",
                severity="error",
                suggested_fix=f"Known cousins: {', '.join(self._payers.counterparty_names)}",
            ))

        if payer.kind is PayerKind.EXTERNAL:
            issues.append(ValidationIssue(
                field="paid_by",
                issue_type="unknown_payer",
                message=f"{payer.name!r} is not a known cousin or box identity",
                severity="warning",
                suggested_fix="Check the spelling; unknown payers never accrue debt",
            ))

        max_future = self._today() + timedelta(days=self._settings.future_date_tolerance_days)
        if candidate.transaction_date > max_future:
            issues.append(ValidationIssue(
                field="transaction_date",
                issue_type="future_date",
                message=f"Date ({candidate.transaction_date}) is in the future",
                severity="warning",
                suggested_fix="Please verify the date is correct",
            ))

        approx_usd = candidate.original_amount
        if candidate.resolved_currency is Currency.UYU:
            rate = candidate.exchange_rate or self._settings.fallback_uyu_rate
            approx_usd = candidate.original_amount / rate
        if approx_usd > self._settings.max_transaction_usd:
            issues.append(ValidationIssue(
                field="original_amount",
                issue_type="suspicious_value",
                message=f"Amount (about USD {approx_usd:,.2f}) seems unusually high",
                severity="warning",
                suggested_fix="Please verify this amount is correct",
            ))

        is_valid = not any(issue.severity == "error" for issue in issues)
        return is_valid, issues

    async def _check_duplicates(
        self,
        candidate: TransactionCandidate,
    ) -> list[ValidationIssue]:
        """Flag a stored transaction with the same date, payer and original amount."""
        if self._storage is None:
            return []

        try:
            existing = await self._storage.list_transactions()
        except Exception as e:
            # A storage hiccup must not block validation
            logger.warning("duplicate_check_failed", error=str(e))
            return []

        payer_name = self._payers.resolve(candidate.paid_by).name
        for tx in existing:
            if (
                tx.transaction_date == candidate.transaction_date
                and tx.paid_by == payer_name
                and tx.original_amount == candidate.original_amount
                and tx.original_currency is candidate.resolved_currency
            ):
                return [ValidationIssue(
                    field="duplicate",
                    issue_type="potential_duplicate",
                    message=(
                        f"A transaction of {candidate.original_amount} "
                        f"{tx.original_currency.value} by {payer_name} on "
                        f"{candidate.transaction_date} already exists"
                    ),
                    severity="warning",
                    suggested_fix="Please verify this isn't a duplicate entry",
                )]
        return []

    async def validate(
        self,
        candidate: TransactionCandidate,
        check_duplicates: bool = True,
    ) -> ValidationResult:
        """
        Run the full two-stage pipeline.

        Stage 2 only runs if stage 1 passes.
        """
        all_issues = []

        schema_valid, schema_issues = self._validate_schema(candidate)
        all_issues.extend(schema_issues)

        semantic_valid = False
        if schema_valid:
            semantic_valid, semantic_issues = self._validate_semantic(candidate)
            all_issues.extend(semantic_issues)

            if check_duplicates:
                all_issues.extend(await self._check_duplicates(candidate))

        warnings = [issue.message for issue in all_issues if issue.severity == "warning"]
        is_valid = schema_valid and semantic_valid

        return ValidationResult(
            candidate_id=candidate.candidate_id,
            schema_valid=schema_valid,
            semantic_valid=semantic_valid,
            is_valid=is_valid,
            can_confirm=is_valid,
            issues=all_issues,
            warnings=warnings,
        )

    def get_user_friendly_summary(
        self,
        result: ValidationResult,
    ) -> str:
        """Short text for the review screen."""
        if result.is_valid and not result.warnings:
            return "✅ Everything looks right. Please review and confirm."

        lines = []

        errors = [issue for issue in result.issues if issue.severity == "error"]
        if errors:
            lines.append("❌ This can't be saved yet:")
            for issue in errors:
                lines.append(f"   • {issue.message}")
                if issue.suggested_fix:
                    lines.append(f"     💡 {issue.suggested_fix}")

        if result.warnings:
            if lines:
                lines.append("")
            lines.append("⚠️ Please verify the following:")
            for warning in result.warnings:
                lines.append(f"   • {warning}")

        lines.append("")
        if result.can_confirm:
            lines.append("You can still confirm, but please review carefully.")
        else:
            lines.append("Please fix the issues above before confirming.")

        return "\n".join(lines)
