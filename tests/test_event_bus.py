import unittest
from datetime import datetime

from erp_obras.core import EventBus, OrderApproved, OrderDelivered, OrderRejected
from erp_obras.domain.models import MaterialOrder, OrderQuote
from erp_obras.observability import metrics_snapshot, reset_metrics_for_tests


def _approved_event(workspace_id: str = "obra-a") -> OrderApproved:
    order = MaterialOrder(id="REQ-1001", project_id="P1", request_date="2024-01-10", requested_by="Obra")
    quote = OrderQuote(id="q1", supplier_id="S-1000", total_price=100.0, delivery_days=2, is_selected=True)
    return OrderApproved(workspace_id=workspace_id, order=order, quote=quote)


class EventBusTest(unittest.TestCase):
    def setUp(self) -> None:
        reset_metrics_for_tests()

    def test_handler_execution_order_is_predictable(self) -> None:
        bus = EventBus()
        execution_trace = []

        bus.subscribe(OrderDelivered, lambda _event: execution_trace.append("first"))
        bus.subscribe(OrderDelivered, lambda _event: execution_trace.append("second"))
        bus.publish(OrderDelivered(workspace_id="obra-a", order_id="REQ-1"))

        self.assertEqual(execution_trace, ["first", "second"])

    def test_handlers_only_receive_their_event_type(self) -> None:
        bus = EventBus()
        approved, rejected = [], []
        bus.subscribe(OrderApproved, approved.append)
        bus.subscribe(OrderRejected, rejected.append)

        bus.publish(_approved_event())

        self.assertEqual(len(approved), 1)
        self.assertEqual(rejected, [])
        self.assertEqual(approved[0].order.id, "REQ-1001")

    def test_failing_handler_is_logged_and_next_handler_still_runs(self) -> None:
        bus = EventBus()
        calls = []

        def broken(_event):
            raise RuntimeError("boom")

        bus.subscribe(OrderRejected, broken)
        bus.subscribe(OrderRejected, calls.append)

        with self.assertLogs("erp_obras", level="ERROR") as captured:
            bus.publish(OrderRejected(workspace_id="obra-a", order_id="REQ-1", from_status="pending_quotes"))

        self.assertEqual(len(calls), 1)
        self.assertTrue(any("event_handler_failed" in line for line in captured.output))

    def test_propagating_handler_failure_reaches_publisher(self) -> None:
        bus = EventBus()
        calls = []

        def broken(_event):
            raise RuntimeError("payable store down")

        bus.subscribe(OrderApproved, broken, propagate=True)
        bus.subscribe(OrderApproved, calls.append)

        with self.assertLogs("erp_obras", level="ERROR"):
            with self.assertRaises(RuntimeError):
                bus.publish(_approved_event())

        self.assertEqual(calls, [])

    def test_event_defaults_are_normalized(self) -> None:
        event = OrderDelivered(workspace_id="  ", order_id="REQ-1", event_id="", occurred_at=datetime(2024, 1, 1))

        self.assertEqual(event.workspace_id, "unknown")
        self.assertTrue(event.event_id)
        self.assertIsNotNone(event.occurred_at.tzinfo)

    def test_published_events_are_counted(self) -> None:
        bus = EventBus()
        bus.publish(_approved_event())
        bus.publish(OrderDelivered(workspace_id="obra-a", order_id="REQ-1"))

        snapshot = metrics_snapshot()
        self.assertEqual(snapshot["domain_events"]["emitted_total"], 2)
        self.assertEqual(snapshot["domain_events"]["by_type"]["OrderApproved"], 1)

    def test_clear_removes_handlers(self) -> None:
        bus = EventBus()
        calls = []
        bus.subscribe(OrderDelivered, calls.append)
        bus.clear()
        bus.publish(OrderDelivered(workspace_id="obra-a", order_id="REQ-1"))
        self.assertEqual(calls, [])


if __name__ == "__main__":
    unittest.main()
