"""
Two-Stage Draft Validation

DESIGN DECISION: Validation happens in two distinct stages:

STAGE 1 - SCHEMA VALIDATION:
- Required field presence
- GST registration number format
- Text lengths and amount ranges the form expects
- This catches incomplete forms

STAGE 2 - SEMANTIC VALIDATION:
- Line totals match units, price and tax rate
- Tax halves add up to the line tax
- Subtotal, tax amount and total agree with the line items
- Duplicate detection for customer bills
- This catches arithmetic slips before a bill is saved

IMPORTANT: Validation is advisory. The stores never call it, and it
never changes the draft. It reports issues for the caller to show.
"""

import re
from decimal import Decimal
from typing import Any, Mapping, NamedTuple, Optional, Union

from pydantic import BaseModel, ValidationError

from billstore.config import get_settings
from billstore.models.bill import (
    BillDraft,
    BillLineItem,
    CustomerBillDraft,
    ValidationIssue,
    ValidationResult,
)
from billstore.services.storage.bills import CustomerBillStore


# 2 digit state code, 10 character PAN, entity digit, 'Z', check character
GSTIN_PATTERN = re.compile(r"^[0-9]{2}[A-Z]{5}[0-9]{4}[A-Z][1-9A-Z]Z[0-9A-Z]$")

# Longest value the billing form expects, by stored name
TEXT_LIMITS = {
    "customer": 200,
    "address": 500,
    "city": 100,
    "state": 100,
    "gstno": 20,
    "invoice": 50,
    "billtype": 50,
    "notes": 2000,
}
LINE_TEXT_LIMITS = {"name": 200, "hsn": 20, "quantityType": 20}

BILL_AMOUNTS = ("subtotal", "taxAmount", "total")
LINE_AMOUNTS = ("units", "price", "gst", "cgst", "sgst", "totalAmount")


class BillTotals(NamedTuple):
    subtotal: Decimal
    tax_amount: Decimal
    total: Decimal


def calculate_totals(items: list[BillLineItem]) -> BillTotals:
    """Subtotal, tax and total implied by a list of line items."""
    subtotal = sum((item.net_amount for item in items), Decimal("0"))
    tax_amount = sum((item.expected_tax for item in items), Decimal("0"))
    return BillTotals(subtotal, tax_amount, subtotal + tax_amount)


class BillValidator:
    """
    Validates bill drafts through a two-stage pipeline.

    Stage 1: Schema validation (no storage needed)
    Stage 2: Semantic validation (uses the customer bill store for duplicates)
    """

    def __init__(
        self,
        customer_bills: Optional[CustomerBillStore] = None,
    ):
        """
        Initialize validator.

        Args:
            customer_bills: Store used for duplicate checking.
                           If None, duplicate checking is skipped.
        """
        self._customer_bills = customer_bills
        self._tolerance = get_settings().app.totals_tolerance

    @staticmethod
    def _parse(
        model: type[CustomerBillDraft],
        data: Union[BaseModel, Mapping[str, Any]],
    ) -> tuple[Optional[CustomerBillDraft], list[ValidationIssue]]:
        """Turn form data into a draft, reporting field errors as issues."""
        if isinstance(data, model):
            return data, []
        if isinstance(data, BaseModel):
            data = data.model_dump(by_alias=True)
        try:
            return model.model_validate(data), []
        except ValidationError as e:
            issues = [
                ValidationIssue(
                    field=".".join(str(part) for part in error["loc"]) or "bill",
                    issue_type="missing" if error["type"] == "missing" else "invalid_value",
                    message=error["msg"],
                    severity="error",
                )
                for error in e.errors()
            ]
            return None, issues

    def _validate_schema(
        self,
        draft: CustomerBillDraft,
    ) -> tuple[bool, list[ValidationIssue]]:
        """
        Stage 1: Schema validation of a parsed draft.

        Returns: (is_valid, list_of_issues)
        """
        issues = []

        if not draft.customer:
            issues.append(ValidationIssue(
                field="customer",
                issue_type="missing",
                message="Customer name is required",
                severity="error",
                suggested_fix="Enter the customer's name as it should appear on the bill",
            ))

        if not draft.invoice:
            issues.append(ValidationIssue(
                field="invoice",
                issue_type="missing",
                message="No invoice reference entered",
                severity="warning",
                suggested_fix="Enter the invoice reference printed on the bill",
            ))

        if draft.gst_no and not GSTIN_PATTERN.match(draft.gst_no.upper()):
            issues.append(ValidationIssue(
                field="gstno",
                issue_type="invalid_format",
                message=f"GST number '{draft.gst_no}' is not a valid 15 character GSTIN",
                severity="warning",
                suggested_fix="Check the GSTIN on the customer's registration",
            ))

        stored = draft.model_dump(by_alias=True)
        issues.extend(self._check_limits("", stored, TEXT_LIMITS, BILL_AMOUNTS))
        for position, item in enumerate(stored.get("additionalItems", [])):
            prefix = f"additionalItems[{position}]."
            issues.extend(self._check_limits(prefix, item, LINE_TEXT_LIMITS, LINE_AMOUNTS))
            if item["gst"] > 100:
                issues.append(ValidationIssue(
                    field=f"{prefix}gst",
                    issue_type="out_of_range",
                    message=f"Tax rate {item['gst']}% is above 100%",
                    severity="warning",
                ))

        is_valid = not any(issue.severity == "error" for issue in issues)
        return is_valid, issues

    @staticmethod
    def _check_limits(
        prefix: str,
        values: dict[str, Any],
        text_limits: dict[str, int],
        amounts: tuple[str, ...],
    ) -> list[ValidationIssue]:
        """Warn about text longer than the form allows and negative amounts."""
        issues = []

        for name, limit in text_limits.items():
            value = values.get(name)
            if isinstance(value, str) and len(value) > limit:
                issues.append(ValidationIssue(
                    field=f"{prefix}{name}",
                    issue_type="too_long",
                    message=f"{name} is {len(value)} characters long (the form allows {limit})",
                    severity="warning",
                ))

        for name in amounts:
            value = values.get(name)
            if value is not None and value < 0:
                issues.append(ValidationIssue(
                    field=f"{prefix}{name}",
                    issue_type="out_of_range",
                    message=f"{name} is negative ({value})",
                    severity="warning",
                ))

        return issues

    def _differs(self, stated: Decimal, expected: Decimal) -> bool:
        return abs(stated - expected) > self._tolerance

    def _validate_semantic(
        self,
        draft: BillDraft,
    ) -> tuple[bool, list[ValidationIssue]]:
        """
        Stage 2: Semantic validation of amounts.

        Returns: (is_valid, list_of_issues)
        """
        issues = []

        for position, item in enumerate(draft.additional_items, start=1):
            label = item.sno or str(position)

            if item.total_amount and self._differs(item.total_amount, item.expected_total):
                issues.append(ValidationIssue(
                    field=f"additionalItems[{position - 1}].totalAmount",
                    issue_type="inconsistent",
                    message=(
                        f"Line {label}: total ₹{item.total_amount} does not match "
                        f"units × price + {item.gst}% tax (₹{item.expected_total:.2f})"
                    ),
                    severity="warning",
                    suggested_fix="Recalculate the line total",
                ))

            if (item.cgst or item.sgst) and self._differs(item.cgst + item.sgst, item.expected_tax):
                issues.append(ValidationIssue(
                    field=f"additionalItems[{position - 1}].cgst",
                    issue_type="inconsistent",
                    message=(
                        f"Line {label}: CGST + SGST (₹{item.cgst + item.sgst}) does not "
                        f"equal the line tax (₹{item.expected_tax:.2f})"
                    ),
                    severity="warning",
                ))

        if draft.additional_items:
            totals = calculate_totals(draft.additional_items)
            if draft.subtotal and self._differs(draft.subtotal, totals.subtotal):
                issues.append(ValidationIssue(
                    field="subtotal",
                    issue_type="inconsistent",
                    message=(
                        f"Subtotal (₹{draft.subtotal}) doesn't match the line items "
                        f"(₹{totals.subtotal:.2f})"
                    ),
                    severity="warning",
                    suggested_fix="Please verify the amounts",
                ))

        if draft.total and self._differs(draft.total, draft.subtotal + draft.tax_amount):
            issues.append(ValidationIssue(
                field="total",
                issue_type="inconsistent",
                message=(
                    f"Total (₹{draft.total}) doesn't match "
                    f"subtotal + tax (₹{draft.subtotal + draft.tax_amount})"
                ),
                severity="warning",
                suggested_fix="Please verify the amounts",
            ))

        is_valid = not any(issue.severity == "error" for issue in issues)
        return is_valid, issues

    def _check_duplicates(
        self,
        draft: CustomerBillDraft,
    ) -> list[ValidationIssue]:
        """Warn about a customer bill the store would refuse."""
        if self._customer_bills is None:
            return []

        existing = self._customer_bills.find_duplicate(draft)
        if existing is None:
            return []

        return [ValidationIssue(
            field="invoice",
            issue_type="duplicate",
            message=(
                f"{existing.customer} already has a bill with invoice reference "
                f"'{existing.invoice}' ({existing.invoice_number})"
            ),
            severity="error",
            suggested_fix="Open the existing bill instead of creating a new one",
        )]

    def _result(
        self,
        subject: str,
        schema_valid: bool,
        semantic_valid: bool,
        issues: list[ValidationIssue],
    ) -> ValidationResult:
        return ValidationResult(
            subject=subject,
            schema_valid=schema_valid,
            semantic_valid=semantic_valid,
            is_valid=schema_valid and semantic_valid,
            issues=issues,
            warnings=[issue.message for issue in issues if issue.severity == "warning"],
        )

    def validate(
        self,
        data: Union[BillDraft, Mapping[str, Any]],
    ) -> ValidationResult:
        """
        Run full two-stage validation on a bill draft or raw form data.

        Stage 2 only runs if stage 1 passes.
        """
        draft, issues = self._parse(BillDraft, data)
        if draft is None:
            return self._result("bill", False, False, issues)

        schema_valid, schema_issues = self._validate_schema(draft)
        issues.extend(schema_issues)

        semantic_valid = False
        if schema_valid:
            semantic_valid, semantic_issues = self._validate_semantic(draft)
            issues.extend(semantic_issues)

        return self._result("bill", schema_valid, semantic_valid, issues)

    def validate_customer_bill(
        self,
        data: Union[CustomerBillDraft, Mapping[str, Any]],
        check_duplicates: bool = True,
    ) -> ValidationResult:
        """Validate a customer bill draft, optionally against the store."""
        draft, issues = self._parse(CustomerBillDraft, data)
        if draft is None:
            return self._result("customer_bill", False, False, issues)

        schema_valid, schema_issues = self._validate_schema(draft)
        issues.extend(schema_issues)

        semantic_valid = False
        if schema_valid:
            duplicate_issues = self._check_duplicates(draft) if check_duplicates else []
            issues.extend(duplicate_issues)
            semantic_valid = not duplicate_issues

        return self._result("customer_bill", schema_valid, semantic_valid, issues)

    def get_user_friendly_summary(
        self,
        result: ValidationResult,
    ) -> str:
        """
        Generate a short summary of validation results for the form.
        """
        if result.is_valid and not result.warnings:
            return "✅ All checks passed."

        lines = []

        if result.has_errors:
            lines.append("❌ This bill cannot be saved yet:")
            for issue in result.issues:
                if issue.severity == "error":
                    lines.append(f"   • {issue.message}")
                    if issue.suggested_fix:
                        lines.append(f"     💡 {issue.suggested_fix}")

        if result.warnings:
            if lines:
                lines.append("")
            lines.append("⚠️ Please verify the following:")
            for warning in result.warnings:
                lines.append(f"   • {warning}")

        return "\n".join(lines)
