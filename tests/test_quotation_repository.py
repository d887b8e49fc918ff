import unittest

from marketplace.domain.contracts import QuotationCreateInput, ServiceRequestCreateInput
from marketplace.errors import ConflictError, ValidationError
from marketplace.infrastructure.repositories import QuotationRepository, ServiceRequestRepository
from tests.helpers.seed import force_status, future_iso, past_iso, seed_supplier, seed_user
from tests.helpers.temp_db import TempDbSandbox


class QuotationRepositoryTest(unittest.TestCase):
    def setUp(self) -> None:
        self._temp_db = TempDbSandbox(prefix="quotation_ledger")
        self.db = self._temp_db.connect()
        self.requests = ServiceRequestRepository()
        self.repo = QuotationRepository(requests=self.requests)
        seed_user(self.db, "client-1", "client")
        seed_supplier(self.db, "supplier-1", first_name="Sam", company_name="Acme", rating=4.5)
        seed_supplier(self.db, "supplier-2", first_name="Sue", company_name="Bolt", rating=3.0)
        record = self.requests.create(
            self.db,
            client_id="client-1",
            data=ServiceRequestCreateInput(title="Office network"),
        )
        self.request_id = record["id"]
        force_status(self.db, self.request_id, "published")

    def tearDown(self) -> None:
        self._temp_db.cleanup()

    def _quote(self, supplier_id="supplier-1", **fields):
        data = {"amount": 200}
        data.update(fields)
        return self.repo.create(
            self.db,
            request_id=self.request_id,
            supplier_id=supplier_id,
            data=QuotationCreateInput(**data),
        )

    def test_create_inserts_pending(self) -> None:
        quotation = self._quote(description="Full rewiring", estimated_duration="2 weeks", valid_until=future_iso())
        self.assertEqual(quotation["status"], "pending")
        self.assertEqual(quotation["amount"], 200)
        self.assertEqual(quotation["service_request_id"], self.request_id)
        self.assertIsNone(quotation["resolved_at"])

    def test_zero_amount_is_allowed(self) -> None:
        self.assertEqual(self._quote(amount=0)["amount"], 0)

    def test_duplicate_pair_is_rejected_and_original_untouched(self) -> None:
        original = self._quote(amount=150)
        with self.assertRaises(ConflictError) as ctx:
            self._quote(amount=90)
        self.assertEqual(ctx.exception.code, "DUPLICATE_QUOTATION")
        self.assertFalse(self.db.in_transaction)

        rows = self.repo.list_for_request(self.db, self.request_id)
        self.assertEqual(len(rows), 1)
        self.assertEqual(rows[0]["id"], original["id"])
        self.assertEqual(rows[0]["amount"], 150)

    def test_unique_constraint_backs_the_duplicate_check(self) -> None:
        self._quote()
        self.repo.find_for_supplier = lambda *_args, **_kwargs: None
        with self.assertRaises(ConflictError) as ctx:
            self._quote(amount=10)
        self.assertEqual(ctx.exception.code, "DUPLICATE_QUOTATION")

    def test_invalid_amount(self) -> None:
        for amount in (-1, None, "abc", True):
            with self.assertRaises(ValidationError) as ctx:
                self._quote(amount=amount)
            self.assertEqual(ctx.exception.code, "INVALID_AMOUNT")

    def test_valid_until_must_be_future(self) -> None:
        with self.assertRaises(ValidationError) as ctx:
            self._quote(valid_until=past_iso())
        self.assertEqual(ctx.exception.code, "INVALID_VALID_UNTIL")

    def test_request_must_be_published(self) -> None:
        force_status(self.db, self.request_id, "draft")
        with self.assertRaises(ConflictError) as ctx:
            self._quote()
        self.assertEqual(ctx.exception.code, "REQUEST_NOT_OPEN")

    def test_missing_request_returns_none(self) -> None:
        result = self.repo.create(
            self.db,
            request_id="missing",
            supplier_id="supplier-1",
            data=QuotationCreateInput(amount=1),
        )
        self.assertIsNone(result)

    def test_list_for_request_is_oldest_first_with_supplier_details(self) -> None:
        first = self._quote("supplier-1")
        second = self._quote("supplier-2", amount=300)
        rows = self.repo.list_for_request(self.db, self.request_id)
        self.assertEqual([row["id"] for row in rows], [first["id"], second["id"]])
        self.assertEqual(rows[0]["supplier_name"], "Sam Supplier")
        self.assertEqual(rows[0]["supplier_company"], "Acme")
        self.assertEqual(rows[0]["supplier_rating"], 4.5)
        self.assertEqual(rows[1]["supplier_company"], "Bolt")


if __name__ == "__main__":
    unittest.main()
