"""
Core Data Models for billstore

These models define the schemas for every bill record kept in the stores.
They are designed to:
1. Keep the persisted JSON keys stable (billtype, gstno, createdAt, ...)
2. Give Python callers snake_case attributes
3. Be serializable for storage and logging
4. Keep whatever values the form sent; only values of the wrong type
   (an amount that is not a number, a date that is not a date) are rejected

DESIGN DECISION: Persisted names live in field aliases. Models are populated
by either name, so callers can pass form data as-is or use attributes.

There are no length or range limits here. Blank customers, long notes and
negative amounts are reported by BillValidator as advisory issues.
"""

from datetime import date, datetime, timezone
from decimal import Decimal
from enum import Enum
from typing import Any, Optional

from pydantic import (
    BaseModel,
    ConfigDict,
    Field,
    field_serializer,
    field_validator,
)


RECORD_CONFIG = ConfigDict(
    str_strip_whitespace=True,
    populate_by_name=True,
    extra="ignore",
)


def utc_now() -> datetime:
    """Current UTC time truncated to milliseconds (the stored precision)."""
    now = datetime.now(timezone.utc)
    return now.replace(microsecond=now.microsecond - now.microsecond % 1000)


def to_iso_timestamp(value: datetime) -> str:
    """Render a timestamp as ``2024-06-15T10:30:00.000Z``."""
    if value.tzinfo is None:
        value = value.replace(tzinfo=timezone.utc)
    value = value.astimezone(timezone.utc)
    return value.strftime("%Y-%m-%dT%H:%M:%S.") + f"{value.microsecond // 1000:03d}Z"


def _blank_as_zero(value: Any) -> Any:
    if value is None or (isinstance(value, str) and not value.strip()):
        return Decimal("0")
    return value


# =============================================================================
# ENUMS
# =============================================================================

class PaymentStatus(str, Enum):
    """Payment status of a stored bill. New bills always start as PENDING."""
    PAID = "Paid"
    PENDING = "Pending"
    OVERDUE = "Overdue"


# =============================================================================
# LINE ITEMS
# =============================================================================

class BillLineItem(BaseModel):
    """
    Individual line item on a bill.

    gst is a rate in percent; cgst and sgst are the two halves of the
    tax amount as entered on the form.
    """
    model_config = RECORD_CONFIG

    sno: str = Field(default="", description="Serial number on the bill")
    name: str = Field(default="", description="Item name")
    hsn: str = Field(default="", description="HSN/SAC classification code")
    units: Decimal = Field(default=Decimal("0"), description="Unit count")
    price: Decimal = Field(default=Decimal("0"), description="Price per unit")
    gst: Decimal = Field(default=Decimal("0"), description="Tax rate (%)")
    cgst: Decimal = Field(default=Decimal("0"), description="Central tax amount")
    sgst: Decimal = Field(default=Decimal("0"), description="State tax amount")
    total_amount: Decimal = Field(
        default=Decimal("0"),
        alias="totalAmount",
        description="Line total including tax",
    )
    quantity_type: str = Field(
        default="",
        alias="quantityType",
        description="Unit of measure (e.g. Nos, Kg, Hrs)",
    )

    @field_validator("units", "price", "gst", "cgst", "sgst", "total_amount", mode="before")
    @classmethod
    def blank_numbers_are_zero(cls, v: Any) -> Any:
        """Empty form inputs arrive as ''."""
        return _blank_as_zero(v)

    @property
    def net_amount(self) -> Decimal:
        return self.units * self.price

    @property
    def expected_tax(self) -> Decimal:
        return self.net_amount * self.gst / Decimal("100")

    @property
    def expected_total(self) -> Decimal:
        return self.net_amount + self.expected_tax


# =============================================================================
# DRAFTS - what callers hand to a store
# =============================================================================

class CustomerBillDraft(BaseModel):
    """Caller-supplied fields of a customer bill (the reduced record shape)."""
    model_config = RECORD_CONFIG

    customer: str = Field(default="", description="Customer name")
    address: str = ""
    city: str = ""
    state: str = ""
    gst_no: str = Field(
        default="",
        alias="gstno",
        description="Customer GST registration number",
    )
    invoice: str = Field(
        default="",
        description="Invoice reference typed on the form",
    )


class BillDraft(CustomerBillDraft):
    """Caller-supplied fields of a full bill."""

    bill_type: str = Field(default="", alias="billtype")
    service_date: Optional[date] = Field(
        default=None,
        alias="date",
        description="Date the service was performed",
    )
    additional_items: list[BillLineItem] = Field(
        default_factory=list,
        alias="additionalItems",
    )
    notes: str = ""
    subtotal: Decimal = Field(default=Decimal("0"))
    tax_amount: Decimal = Field(default=Decimal("0"), alias="taxAmount")
    total: Decimal = Field(default=Decimal("0"))

    @field_validator("service_date", mode="before")
    @classmethod
    def blank_date_is_absent(cls, v: Any) -> Any:
        if isinstance(v, str) and not v.strip():
            return None
        return v

    @field_validator("subtotal", "tax_amount", "total", mode="before")
    @classmethod
    def blank_amounts_are_zero(cls, v: Any) -> Any:
        return _blank_as_zero(v)


# =============================================================================
# STORED RECORDS
# =============================================================================

class StoredRecord(BaseModel):
    """
    Fields a store adds when a draft is saved.

    CRITICAL: id, invoice_number and created_at never change after creation.
    updated_at stays unset until the first mutation.
    """
    model_config = RECORD_CONFIG

    id: str = Field(..., description="Creation time in epoch milliseconds")
    invoice_number: str = Field(..., alias="invoiceNumber")
    status: PaymentStatus = Field(default=PaymentStatus.PENDING)
    created_at: datetime = Field(..., alias="createdAt")
    updated_at: Optional[datetime] = Field(default=None, alias="updatedAt")

    @field_serializer("created_at", "updated_at", when_used="json-unless-none")
    def serialize_timestamp(self, value: datetime) -> str:
        return to_iso_timestamp(value)


class SavedCustomerBill(StoredRecord, CustomerBillDraft):
    """A customer bill as kept in the customer bill store."""


class SavedBill(StoredRecord, BillDraft):
    """A full bill as kept in the bill store."""


# =============================================================================
# VALIDATION MODELS
# =============================================================================

class ValidationIssue(BaseModel):
    """A single validation issue found."""

    field: str = Field(..., description="Field with the issue")
    issue_type: str = Field(
        ...,
        description="Type of issue (e.g., 'missing', 'invalid_format', 'inconsistent')"
    )
    message: str = Field(..., description="Human-readable description of the issue")
    severity: str = Field(
        ...,
        pattern="^(error|warning|info)$",
        description="Issue severity"
    )
    suggested_fix: Optional[str] = None


class ValidationResult(BaseModel):
    """
    Result of the two-stage draft validation.

    Stage 1: Schema checks (required fields, formats)
    Stage 2: Semantic checks (totals consistency, duplicates)
    """

    subject: str = Field(..., description="'bill' or 'customer_bill'")
    validated_at: datetime = Field(default_factory=utc_now)

    schema_valid: bool
    semantic_valid: bool
    is_valid: bool

    issues: list[ValidationIssue] = Field(default_factory=list)
    warnings: list[str] = Field(default_factory=list)

    @property
    def has_errors(self) -> bool:
        """Check if there are any error-level issues."""
        return any(issue.severity == "error" for issue in self.issues)

    @property
    def error_count(self) -> int:
        """Count error-level issues."""
        return sum(1 for issue in self.issues if issue.severity == "error")
