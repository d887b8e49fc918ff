import unittest
from unittest.mock import patch

from marketplace import policies
from marketplace.errors import PermissionError as AppPermissionError
from marketplace.policies import Actor, Role


CLIENT = Actor(id="client-1", role=Role.CLIENT)
OTHER_CLIENT = Actor(id="client-2", role=Role.CLIENT)
SUPPLIER = Actor(id="supplier-1", role=Role.SUPPLIER)
OTHER_SUPPLIER = Actor(id="supplier-2", role=Role.SUPPLIER)
EMPLOYEE = Actor(id="employee-1", role=Role.EMPLOYEE)
ADMIN = Actor(id="admin-1", role=Role.ADMIN)


def _request(status="draft", **extra):
    record = {
        "id": "req-1",
        "client_id": "client-1",
        "status": status,
        "assigned_supplier_id": None,
        "assigned_employee_id": None,
    }
    record.update(extra)
    return record


class AccessPolicyTest(unittest.TestCase):
    def test_normalize_role(self) -> None:
        self.assertIs(policies.normalize_role(" Supplier "), Role.SUPPLIER)
        self.assertIs(policies.normalize_role(Role.ADMIN), Role.ADMIN)
        self.assertIsNone(policies.normalize_role("buyer"))
        self.assertIsNone(policies.normalize_role(None))

    def test_can_view(self) -> None:
        draft = _request("draft")
        self.assertTrue(policies.can_view(draft, ADMIN))
        self.assertTrue(policies.can_view(draft, CLIENT))
        self.assertFalse(policies.can_view(draft, OTHER_CLIENT))
        self.assertFalse(policies.can_view(draft, SUPPLIER))

        published = _request("published")
        self.assertTrue(policies.can_view(published, SUPPLIER))

        assigned = _request("in_progress", assigned_supplier_id="supplier-1", assigned_employee_id="employee-1")
        self.assertTrue(policies.can_view(assigned, SUPPLIER))
        self.assertFalse(policies.can_view(assigned, OTHER_SUPPLIER))
        self.assertTrue(policies.can_view(assigned, EMPLOYEE))

    def test_can_mutate(self) -> None:
        record = _request("published", assigned_supplier_id="supplier-1")
        self.assertTrue(policies.can_mutate(record, ADMIN))
        self.assertTrue(policies.can_mutate(record, CLIENT))
        self.assertFalse(policies.can_mutate(record, OTHER_CLIENT))
        self.assertFalse(policies.can_mutate(record, SUPPLIER))
        self.assertFalse(policies.can_mutate(record, EMPLOYEE))

    def test_can_delete_only_draft_for_owner(self) -> None:
        self.assertTrue(policies.can_delete(_request("draft"), CLIENT))
        self.assertFalse(policies.can_delete(_request("published"), CLIENT))
        self.assertFalse(policies.can_delete(_request("draft"), OTHER_CLIENT))
        self.assertTrue(policies.can_delete(_request("published"), ADMIN))

    def test_quote_and_resolve_roles(self) -> None:
        self.assertTrue(policies.can_quote(SUPPLIER))
        for actor in (CLIENT, ADMIN, EMPLOYEE):
            self.assertFalse(policies.can_quote(actor))

        self.assertTrue(policies.can_resolve_quotation(CLIENT))
        self.assertTrue(policies.can_resolve_quotation(ADMIN))
        self.assertFalse(policies.can_resolve_quotation(SUPPLIER))
        self.assertFalse(policies.can_resolve_quotation(EMPLOYEE))

    def test_suppliers_only_see_their_own_quotation(self) -> None:
        rows = [
            {"id": "q1", "supplier_id": "supplier-1"},
            {"id": "q2", "supplier_id": "supplier-2"},
        ]
        self.assertEqual([row["id"] for row in policies.visible_quotations(rows, SUPPLIER)], ["q1"])
        self.assertEqual(len(policies.visible_quotations(rows, CLIENT)), 2)
        self.assertFalse(policies.can_view_quotations(_request("published"), OTHER_CLIENT))
        self.assertFalse(policies.can_view_quotations(_request("published"), EMPLOYEE))

    def test_quoting_supplier_keeps_quotation_access(self) -> None:
        started = _request("in_progress", assigned_supplier_id="supplier-2")
        self.assertFalse(policies.can_view_quotations(started, SUPPLIER))
        self.assertTrue(policies.can_view_quotations(started, SUPPLIER, has_quoted=True))
        self.assertTrue(policies.can_view_quotations(started, OTHER_SUPPLIER))
        self.assertFalse(policies.can_view_quotations(started, OTHER_CLIENT, has_quoted=True))

    def test_list_scope(self) -> None:
        self.assertEqual(policies.list_scope(CLIENT, {"client_id": "client-9"}), {"client_id": "client-1"})
        self.assertEqual(policies.list_scope(ADMIN, {"status": "draft", "category": None}), {"status": "draft"})
        self.assertEqual(policies.list_scope(SUPPLIER, {}), {"status": "published"})
        self.assertEqual(
            policies.list_scope(SUPPLIER, {"status": "in_progress"}),
            {"status": "in_progress", "assigned_supplier_id": "supplier-1"},
        )
        self.assertEqual(
            policies.list_scope(SUPPLIER, {"assigned_supplier_id": "supplier-2"}),
            {"assigned_supplier_id": "supplier-1"},
        )
        self.assertEqual(policies.list_scope(EMPLOYEE, {}), {"assigned_employee_id": "employee-1"})

    def test_missing_role_branch_fails_loudly(self) -> None:
        with self.assertRaises(NotImplementedError):
            policies._dispatch(CLIENT, {Role.CLIENT: lambda: True})

    def test_require_raises_permission_error(self) -> None:
        policies.require(True)
        with self.assertRaises(AppPermissionError) as ctx:
            policies.require(False)
        self.assertEqual(ctx.exception.http_status, 403)

    def test_predicates_dispatch_through_every_role(self) -> None:
        with patch.object(policies, "_dispatch", wraps=policies._dispatch) as dispatch:
            policies.can_view(_request(), CLIENT)
            branches = dispatch.call_args.args[1]
        self.assertEqual(set(branches), set(Role))


if __name__ == "__main__":
    unittest.main()
