"""
Bill Stores

The two collections the billing UI keeps:

- BillStore: full bills (line items, totals, notes) under "saved_bills"
- CustomerBillStore: customer/invoice headers under "saved_bills02",
  refusing a second bill for the same customer and invoice reference

Both share every operation through RecordStore.
"""

from typing import Optional

from billstore.models.bill import (
    BillDraft,
    CustomerBillDraft,
    SavedBill,
    SavedCustomerBill,
)
from billstore.services.storage.record_store import RecordStore


def same_customer_invoice(existing: SavedCustomerBill, draft: CustomerBillDraft) -> bool:
    """
    Duplicate rule for customer bills.

    Customer, address and city compare case-insensitively; the invoice
    reference must match exactly.
    """
    return (
        existing.customer.casefold() == draft.customer.casefold()
        and existing.address.casefold() == draft.address.casefold()
        and existing.city.casefold() == draft.city.casefold()
        and existing.invoice == draft.invoice
    )


class BillStore(RecordStore[BillDraft, SavedBill]):
    """Full bills, no duplicate check."""

    record_model = SavedBill
    draft_model = BillDraft
    entity_type = "bill"
    default_key = "saved_bills"


class CustomerBillStore(RecordStore[CustomerBillDraft, SavedCustomerBill]):
    """Customer bill headers; save() raises DuplicateRecordError on a repeat."""

    record_model = SavedCustomerBill
    draft_model = CustomerBillDraft
    entity_type = "customer_bill"
    default_key = "saved_bills02"

    def duplicate_of(
        self,
        records: list[SavedCustomerBill],
        draft: CustomerBillDraft,
    ) -> Optional[SavedCustomerBill]:
        for record in records:
            if same_customer_invoice(record, draft):
                return record
        return None
