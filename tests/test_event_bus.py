import unittest

from marketplace.application.request_service import RequestService
from marketplace.core import EventBus, QuotationResolved, QuotationSubmitted, ServiceRequestCreated
from marketplace.domain.contracts import (
    QuotationCreateInput,
    QuotationResolveInput,
    ServiceRequestCreateInput,
    ServiceRequestFilters,
    ServiceRequestPatch,
)
from marketplace.observability import metrics_snapshot, reset_metrics_for_tests
from tests.helpers.seed import seed_supplier, seed_user
from tests.helpers.temp_db import TempDbSandbox


class EventBusTest(unittest.TestCase):
    def setUp(self) -> None:
        reset_metrics_for_tests()

    def test_handler_execution_order_is_predictable(self) -> None:
        bus = EventBus()
        execution_trace = []

        bus.subscribe(ServiceRequestCreated, lambda _event: execution_trace.append("first"))
        bus.subscribe(ServiceRequestCreated, lambda _event: execution_trace.append("second"))
        bus.publish(ServiceRequestCreated(service_request_id="r1", client_id="c1", status="draft"))

        self.assertEqual(execution_trace, ["first", "second"])

    def test_failing_handler_is_logged_and_does_not_stop_others(self) -> None:
        bus = EventBus()
        received = []

        def broken(_event):
            raise RuntimeError("notifier down")

        bus.subscribe(QuotationSubmitted, broken)
        bus.subscribe(QuotationSubmitted, received.append)
        with self.assertLogs("marketplace", level="ERROR") as logs:
            bus.publish(QuotationSubmitted(service_request_id="r1", quotation_id="q1", supplier_id="s1"))

        self.assertEqual(len(received), 1)
        self.assertIn("event_handler_failed", logs.output[0])
        snapshot = metrics_snapshot()["domain_events"]
        self.assertEqual(snapshot["by_type"], {"QuotationSubmitted": 1})
        self.assertEqual(snapshot["handler_failed_total"], 1)

    def test_event_defaults_are_normalized(self) -> None:
        event = ServiceRequestCreated(service_request_id="r1", client_id="c1", status="draft", event_id="  ")
        self.assertTrue(event.event_id.strip())
        self.assertIsNotNone(event.occurred_at.tzinfo)


class RequestServiceEventsTest(unittest.TestCase):
    def setUp(self) -> None:
        self._temp_db = TempDbSandbox(prefix="request_service")
        self.db = self._temp_db.connect()
        self.bus = EventBus()
        self.events = []
        for event_type in (ServiceRequestCreated, QuotationSubmitted, QuotationResolved):
            self.bus.subscribe(event_type, self.events.append)
        self.service = RequestService(event_bus=self.bus, default_limit=2, max_limit=5)
        seed_user(self.db, "client-1", "client")
        seed_supplier(self.db, "supplier-1", first_name="Sam", company_name="Acme", rating=4.0)
        seed_supplier(self.db, "supplier-2", first_name="Sue", company_name="Bolt", rating=4.0)

    def tearDown(self) -> None:
        self._temp_db.cleanup()

    def _published_request(self) -> dict:
        record = self.service.create_request(
            self.db,
            client_id="client-1",
            create_input=ServiceRequestCreateInput(title="Garden", budget_min=100, budget_max=500),
        )
        return self.service.update_request(
            self.db,
            record["id"],
            ServiceRequestPatch(fields={"status": "published"}, actor_id="client-1"),
        )

    def test_full_negotiation_emits_events_after_commit(self) -> None:
        request = self._published_request()
        q1 = self.service.create_quotation(
            self.db,
            request_id=request["id"],
            supplier_id="supplier-1",
            create_input=QuotationCreateInput(amount=200),
        )
        q2 = self.service.create_quotation(
            self.db,
            request_id=request["id"],
            supplier_id="supplier-2",
            create_input=QuotationCreateInput(amount=300),
        )

        accepted = self.service.resolve_quotation(
            self.db,
            QuotationResolveInput(quotation_id=q1["id"], status="accepted", actor_id="client-1"),
        )
        self.assertEqual(accepted["status"], "accepted")

        self.assertEqual(
            [type(event).__name__ for event in self.events],
            ["ServiceRequestCreated", "QuotationSubmitted", "QuotationSubmitted", "QuotationResolved"],
        )
        self.assertEqual(self.events[1].client_id, "client-1")
        resolved = self.events[-1]
        self.assertEqual(resolved.status, "accepted")
        self.assertEqual(resolved.supplier_id, "supplier-1")
        self.assertEqual(resolved.rejected_quotation_ids, (q2["id"],))

        statuses = {row["id"]: row["status"] for row in self.service.list_quotations(self.db, request["id"])}
        self.assertEqual(statuses, {q1["id"]: "accepted", q2["id"]: "rejected"})

        history = [event["to_status"] for event in self.service.status_history(self.db, request["id"])]
        self.assertEqual(history, ["draft", "published", "in_progress"])

    def test_failed_operation_emits_nothing(self) -> None:
        request = self._published_request()
        quotation = self.service.create_quotation(
            self.db,
            request_id=request["id"],
            supplier_id="supplier-1",
            create_input=QuotationCreateInput(amount=50),
        )
        self.events.clear()

        mismatch = self.service.resolve_quotation(
            self.db,
            QuotationResolveInput(quotation_id=quotation["id"], status="rejected", expected_request_id="other"),
        )
        self.assertIsNone(mismatch)
        missing = self.service.create_quotation(
            self.db,
            request_id="missing",
            supplier_id="supplier-1",
            create_input=QuotationCreateInput(amount=1),
        )
        self.assertIsNone(missing)
        self.assertEqual(self.events, [])

    def test_notification_failure_does_not_undo_the_write(self) -> None:
        def broken(_event):
            raise RuntimeError("mailer down")

        self.bus.subscribe(ServiceRequestCreated, broken)
        with self.assertLogs("marketplace", level="ERROR"):
            record = self.service.create_request(
                self.db,
                client_id="client-1",
                create_input=ServiceRequestCreateInput(title="Still saved"),
            )
        self.assertIsNotNone(self.service.get_request(self.db, record["id"]))

    def test_list_requests_uses_configured_page_size(self) -> None:
        for idx in range(3):
            self.service.create_request(
                self.db,
                client_id="client-1",
                create_input=ServiceRequestCreateInput(title=f"r{idx}"),
            )
        result = self.service.list_requests(self.db, ServiceRequestFilters(client_id="client-1"))
        self.assertEqual(result["pagination"], {"page": 1, "limit": 2, "total": 3, "totalPages": 2})
        capped = self.service.list_requests(self.db, ServiceRequestFilters(limit=50))
        self.assertEqual(capped["pagination"]["limit"], 5)


if __name__ == "__main__":
    unittest.main()
