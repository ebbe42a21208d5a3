"""
Fulfillment allocation data models.

These models describe how much of an order has been released on outbound
warehouse receipts. They are recomputed on every order-detail view and
never cached.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Dict, Any, List, Optional, Union

Quantity = Union[int, float]


def to_quantity(value: Any) -> Quantity:
    """Coerce a wire quantity, keeping integers integral."""
    try:
        number = float(value)
    except (TypeError, ValueError):
        return 0
    return int(number) if number.is_integer() else number


class ReceiptStatus(Enum):
    """Workflow status of a warehouse receipt."""

    DRAFT = "draft"
    PENDING = "pending"
    APPROVED = "approved"
    COMPLETED = "completed"
    REJECTED = "rejected"
    CANCELLED = "cancelled"
    UNKNOWN = "unknown"

    @classmethod
    def parse(cls, value: Any) -> "ReceiptStatus":
        text = str(value or "").strip().lower()
        if text == "canceled":
            return cls.CANCELLED
        try:
            return cls(text)
        except ValueError:
            return cls.UNKNOWN


@dataclass(frozen=True)
class AllocationRecord:
    """One outbound-release line item tying a product quantity to an order."""

    order_id: str
    product_id: str
    requested_quantity: Quantity
    """Quantity released on this record."""

    record_status: ReceiptStatus
    """Mirrors the enclosing receipt's workflow status."""

    receipt_id: str = ""

    @property
    def counts(self) -> bool:
        """Cancelled records and records without a product never count."""
        return self.record_status is not ReceiptStatus.CANCELLED and bool(self.product_id.strip())


OUTBOUND_RECEIPT_TYPES = frozenset({"export", "outbound"})


@dataclass(frozen=True)
class ReceiptPage:
    """One page of allocation-bearing receipts."""

    receipts: List[Dict[str, Any]]
    total: int = 0
    page: int = 1
    limit: int = 0

    @classmethod
    def from_response(cls, response: Any, page: int, limit: int) -> "ReceiptPage":
        """
        Parse a receipt listing.

        The backend answers either ``{rows, count}`` or ``{receipts, total}``,
        optionally inside a ``data`` envelope.
        """
        body = response
        if isinstance(body, dict) and isinstance(body.get("data"), (dict, list)):
            body = body["data"]

        if isinstance(body, list):
            return cls(receipts=list(body), total=len(body), page=page, limit=limit)

        rows = body.get("rows")
        if rows is None:
            rows = body.get("receipts", body.get("slips", []))
        total = body.get("count", body.get("total", len(rows)))

        return cls(
            receipts=[r for r in rows if isinstance(r, dict)],
            total=int(to_quantity(total)),
            page=int(to_quantity(body.get("page", page))) or page,
            limit=int(to_quantity(body.get("limit", limit))) or limit,
        )

    def allocation_records(self, order_id: str) -> List[AllocationRecord]:
        """
        Flatten receipts into allocation records.

        Receipts that explicitly declare a non-outbound type are ignored.
        """
        records = []
        for receipt in self.receipts:
            receipt_type = str(receipt.get("type") or "").strip().lower()
            if receipt_type and receipt_type not in OUTBOUND_RECEIPT_TYPES:
                continue

            status = ReceiptStatus.parse(receipt.get("status"))
            receipt_id = str(receipt.get("id", ""))
            details = receipt.get("details")
            if details is None:
                details = receipt.get("export_slip_items", receipt.get("items", []))

            for detail in details or []:
                if not isinstance(detail, dict):
                    continue
                product_id = detail.get("productId") or detail.get("product_id") or ""
                quantity = detail.get("quantity")
                if quantity is None:
                    quantity = detail.get("requestedQuantity", detail.get("requested_quantity", 0))
                records.append(AllocationRecord(
                    order_id=str(receipt.get("orderId") or receipt.get("order_id") or order_id),
                    product_id=str(product_id),
                    requested_quantity=to_quantity(quantity),
                    record_status=status,
                    receipt_id=receipt_id,
                ))
        return records


@dataclass(frozen=True)
class OrderLineItem:
    """A product line of an order."""

    product_id: str
    ordered_quantity: Quantity

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "OrderLineItem":
        product_id = data.get("productId") or data.get("product_id") or ""
        quantity = data.get("quantity")
        if quantity is None:
            quantity = data.get("orderedQuantity", data.get("ordered_quantity", 0))
        return cls(product_id=str(product_id), ordered_quantity=to_quantity(quantity))


@dataclass(frozen=True)
class LineAllocation:
    """Ordered / exported / remaining quantities for one product."""

    product_id: str
    ordered: Quantity
    exported: Quantity

    @property
    def remaining(self) -> Quantity:
        """May be negative when concurrent sessions over-allocate."""
        return self.ordered - self.exported

    @property
    def over_allocated(self) -> bool:
        return self.remaining < 0

    @property
    def display_remaining(self) -> Quantity:
        """Remaining quantity floored at zero for display."""
        return max(self.remaining, 0)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "productId": self.product_id,
            "ordered": self.ordered,
            "exported": self.exported,
            "remaining": self.remaining,
            "displayRemaining": self.display_remaining,
            "overAllocated": self.over_allocated,
        }


@dataclass
class ExportedTotals:
    """
    Raw aggregation result of the paginated receipt walk.

    ``error`` is set when a page fetch failed; ``exported`` then only holds
    the partial sums of the pages read before the failure.
    """

    order_id: str
    exported: Dict[str, Quantity] = field(default_factory=dict)
    pages_fetched: int = 0
    records_counted: int = 0
    records_skipped: int = 0
    truncated: bool = False
    error: Optional[str] = None

    @property
    def ok(self) -> bool:
        return self.error is None


@dataclass
class AllocationReport:
    """
    Typed result of a remaining-quantity computation.

    A failed report (``ok`` is False) carries the reason and whatever partial
    totals were gathered; it must never be read as "nothing allocated".
    """

    order_id: str
    ok: bool
    lines: Dict[str, LineAllocation] = field(default_factory=dict)
    error: Optional[str] = None
    partial_exported: Dict[str, Quantity] = field(default_factory=dict)
    truncated: bool = False

    @classmethod
    def success(
        cls,
        order_id: str,
        lines: Dict[str, LineAllocation],
        truncated: bool = False
    ) -> "AllocationReport":
        return cls(order_id=order_id, ok=True, lines=lines, truncated=truncated)

    @classmethod
    def failure(
        cls,
        order_id: str,
        error: str,
        partial_exported: Optional[Dict[str, Quantity]] = None
    ) -> "AllocationReport":
        return cls(
            order_id=order_id,
            ok=False,
            error=error,
            partial_exported=dict(partial_exported or {}),
        )

    @property
    def anomalies(self) -> List[LineAllocation]:
        """Lines whose exported quantity exceeds the ordered quantity."""
        return [line for line in self.lines.values() if line.over_allocated]

    def to_dict(self) -> Dict[str, Any]:
        return {
            "orderId": self.order_id,
            "ok": self.ok,
            "error": self.error,
            "truncated": self.truncated,
            "lines": [line.to_dict() for line in self.lines.values()],
            "partialExported": self.partial_exported,
            "anomalies": [line.product_id for line in self.anomalies],
        }
