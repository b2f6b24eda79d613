import unittest

from erp_obras.domain.models import (
    ORDER_STATUS_APPROVED,
    ORDER_STATUS_DELIVERED,
    ORDER_STATUS_PENDING_QUOTES,
    ORDER_STATUS_READY_FOR_APPROVAL,
    ORDER_STATUS_REJECTED,
    MaterialItem,
    MaterialOrder,
    OrderQuote,
)
from erp_obras.procurement import requisition


def _order(status=ORDER_STATUS_READY_FOR_APPROVAL, quotes=()) -> MaterialOrder:
    return MaterialOrder(
        id="REQ-3001",
        project_id="P1",
        request_date="2024-03-01T09:00:00Z",
        requested_by="Obra",
        status=status,
        items=(MaterialItem(id="i1", name="Brita 1", quantity=8, unit="m3", category="Agregados"),),
        quotes=tuple(quotes),
    )


def _three_quotes(payment_method="PIX", selected=None):
    return [
        OrderQuote(id="a", supplier_id="S-1000", total_price=5000, delivery_days=2, payment_method=payment_method,
                   is_selected=selected == "a"),
        OrderQuote(id="b", supplier_id="S-1001", total_price=4800, delivery_days=3, payment_method=payment_method,
                   is_selected=selected == "b"),
        OrderQuote(id="c", supplier_id="S-1002", total_price=5200, delivery_days=4, payment_method=payment_method,
                   is_selected=selected == "c"),
    ]


class ApprovalCheckTest(unittest.TestCase):
    def test_status_for_quote_count_threshold(self) -> None:
        self.assertEqual(requisition.status_for_quote_count(0), ORDER_STATUS_PENDING_QUOTES)
        self.assertEqual(requisition.status_for_quote_count(2), ORDER_STATUS_PENDING_QUOTES)
        self.assertEqual(requisition.status_for_quote_count(3), ORDER_STATUS_READY_FOR_APPROVAL)
        self.assertEqual(requisition.status_for_quote_count(7), ORDER_STATUS_READY_FOR_APPROVAL)

    def test_two_quotes_are_not_enough(self) -> None:
        check = requisition.approval_check(_order(ORDER_STATUS_PENDING_QUOTES, _three_quotes()[:2]))

        self.assertFalse(check.can_approve)
        self.assertFalse(check.has_enough_quotes)
        self.assertEqual(check.reason, requisition.REASON_QUOTES_INSUFFICIENT)

    def test_payment_method_required_on_effective_quote(self) -> None:
        check = requisition.approval_check(_order(quotes=_three_quotes(payment_method=None)))

        self.assertTrue(check.has_enough_quotes)
        self.assertFalse(check.has_payment_method)
        self.assertEqual(check.reason, requisition.REASON_PAYMENT_METHOD_REQUIRED)

    def test_closed_reason_wins_over_other_failures(self) -> None:
        check = requisition.approval_check(_order(ORDER_STATUS_REJECTED, []))
        self.assertEqual(check.reason, requisition.REASON_ORDER_CLOSED)


class ApproveTest(unittest.TestCase):
    def test_approve_selects_cheapest_when_nothing_selected(self) -> None:
        outcome = requisition.approve(_order(quotes=_three_quotes()))

        self.assertTrue(outcome.approved)
        self.assertEqual(outcome.order.status, ORDER_STATUS_APPROVED)
        self.assertEqual(outcome.selected_quote.id, "b")
        self.assertEqual(outcome.selected_quote.total_price, 4800)

    def test_approve_keeps_explicit_selection(self) -> None:
        outcome = requisition.approve(_order(quotes=_three_quotes(selected="c")))

        self.assertTrue(outcome.approved)
        self.assertEqual(outcome.selected_quote.id, "c")
        self.assertEqual(sum(1 for quote in outcome.order.quotes if quote.is_selected), 1)

    def test_blocked_approval_returns_original_order(self) -> None:
        order = _order(ORDER_STATUS_PENDING_QUOTES, _three_quotes()[:1])
        outcome = requisition.approve(order)

        self.assertFalse(outcome.approved)
        self.assertIs(outcome.order, order)
        self.assertIsNone(outcome.selected_quote)


class RejectAndDeliverTest(unittest.TestCase):
    def test_reject_from_open_states(self) -> None:
        for status in (ORDER_STATUS_PENDING_QUOTES, ORDER_STATUS_READY_FOR_APPROVAL):
            self.assertEqual(requisition.reject(_order(status)).status, ORDER_STATUS_REJECTED)

    def test_terminal_states_do_not_reverse(self) -> None:
        for status in (ORDER_STATUS_APPROVED, ORDER_STATUS_REJECTED, ORDER_STATUS_DELIVERED):
            order = _order(status, _three_quotes(selected="a"))
            self.assertIs(requisition.reject(order), order)
            self.assertFalse(requisition.approve(order).approved)

    def test_deliver_only_from_approved(self) -> None:
        self.assertEqual(requisition.mark_delivered(_order(ORDER_STATUS_APPROVED)).status, ORDER_STATUS_DELIVERED)
        pending = _order(ORDER_STATUS_READY_FOR_APPROVAL)
        self.assertIs(requisition.mark_delivered(pending), pending)


if __name__ == "__main__":
    unittest.main()
