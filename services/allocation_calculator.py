"""
Fulfillment allocation for orders.

For a given order, sums the quantities already released on non-cancelled
outbound warehouse receipts, per product, and derives what remains to be
fulfilled.

The receipt listing is paginated and its total count is not trusted: the
walk stops on the first short page or after max_pages, whichever comes
first. The result is recomputed on every call and never cached.

Usage:
    calculator = AllocationCalculator(api_client, page_size=100, max_pages=50)
    report = calculator.compute_remaining(order_id)
    if not report.ok:
        # show report.error, NOT "nothing allocated"
        ...
"""

from __future__ import annotations

from typing import Dict, Iterable, Optional

from core.api_client import ImportApiClient
from core.exceptions import AllocationComputationError, ImportTrackerError
from models.allocation import (
    AllocationReport,
    ExportedTotals,
    LineAllocation,
    OrderLineItem,
    Quantity,
)
from logging_config import get_logger


logger = get_logger(__name__)

DEFAULT_PAGE_SIZE = 100
DEFAULT_MAX_PAGES = 50


class AllocationCalculator:
    """
    Aggregates outbound allocation records for an order.

    Attributes:
        page_size: Receipts requested per page
        max_pages: Hard bound on pages fetched per computation
    """

    def __init__(
        self,
        api_client: ImportApiClient,
        page_size: int = DEFAULT_PAGE_SIZE,
        max_pages: int = DEFAULT_MAX_PAGES
    ):
        if page_size <= 0:
            raise ValueError("page_size must be positive")
        if max_pages <= 0:
            raise ValueError("max_pages must be positive")

        self._api = api_client
        self.page_size = page_size
        self.max_pages = max_pages

    def compute_exported(self, order_id: str) -> ExportedTotals:
        """
        Sum released quantities per product for ``order_id``.

        Cancelled records and records without a product id are skipped.
        A failed page fetch stops the walk and sets ``error``; the totals
        gathered so far are kept as partial data.
        """
        totals = ExportedTotals(order_id=order_id)

        for page in range(1, self.max_pages + 1):
            try:
                receipt_page = self._api.list_receipts(order_id, page=page, limit=self.page_size)
            except ImportTrackerError as e:
                error = AllocationComputationError(order_id, e.message, page=page)
                logger.error(str(error))
                totals.error = error.message
                return totals

            totals.pages_fetched = page

            for record in receipt_page.allocation_records(order_id):
                if not record.counts:
                    totals.records_skipped += 1
                    continue
                totals.exported[record.product_id] = (
                    totals.exported.get(record.product_id, 0) + record.requested_quantity
                )
                totals.records_counted += 1

            if len(receipt_page.receipts) < self.page_size:
                break
        else:
            totals.truncated = True
            logger.warning(
                f"Allocation walk for order {order_id} stopped at the {self.max_pages}-page bound; "
                f"totals may be incomplete"
            )

        logger.debug(
            f"Order {order_id}: {totals.records_counted} records counted, "
            f"{totals.records_skipped} skipped over {totals.pages_fetched} pages"
        )
        return totals

    def compute_remaining(
        self,
        order_id: str,
        line_items: Optional[Iterable[OrderLineItem]] = None
    ) -> AllocationReport:
        """
        Ordered / exported / remaining quantities for every product of an order.

        Args:
            order_id: Order to compute
            line_items: The order's lines; fetched from the backend when omitted

        Returns:
            AllocationReport (ok=False with a reason when anything failed)
        """
        if line_items is None:
            try:
                line_items = self._api.get_order_items(order_id)
            except ImportTrackerError as e:
                logger.error(f"Could not load order {order_id}: {e.message}")
                return AllocationReport.failure(order_id, e.message)

        ordered: Dict[str, Quantity] = {}
        for item in line_items:
            if not item.product_id.strip():
                continue
            ordered[item.product_id] = ordered.get(item.product_id, 0) + item.ordered_quantity

        totals = self.compute_exported(order_id)
        if not totals.ok:
            return AllocationReport.failure(order_id, totals.error, totals.exported)

        lines: Dict[str, LineAllocation] = {}
        for product_id, quantity in ordered.items():
            lines[product_id] = LineAllocation(
                product_id=product_id,
                ordered=quantity,
                exported=totals.exported.get(product_id, 0),
            )
        # Released but never ordered: reported with ordered=0 as an anomaly
        for product_id, exported in totals.exported.items():
            if product_id not in lines:
                lines[product_id] = LineAllocation(product_id=product_id, ordered=0, exported=exported)

        report = AllocationReport.success(order_id, lines, truncated=totals.truncated)
        for line in report.anomalies:
            logger.warning(
                f"Order {order_id} product {line.product_id} over-allocated: "
                f"ordered={line.ordered} exported={line.exported}"
            )
        return report
