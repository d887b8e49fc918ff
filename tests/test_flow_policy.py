import unittest

from marketplace.messages import status_keys_for_group
from marketplace.negotiation import flow_policy
from marketplace.negotiation.flow_policy import REQUEST_FLOW, can_transition, next_statuses


class FlowPolicyTest(unittest.TestCase):
    def test_every_catalogued_status_has_a_flow_entry(self) -> None:
        self.assertEqual(set(REQUEST_FLOW), set(status_keys_for_group("service_request")))
        self.assertEqual(flow_policy.QUOTATION_STATUSES, set(status_keys_for_group("quotation")))

    def test_in_progress_is_never_a_patch_target(self) -> None:
        for status_name, policy in REQUEST_FLOW.items():
            self.assertNotIn("in_progress", policy["next_statuses"], f"in_progress reachable from {status_name}")

    def test_happy_path(self) -> None:
        self.assertTrue(can_transition("draft", "published"))
        self.assertTrue(can_transition("in_progress", "completed"))
        self.assertFalse(can_transition("draft", "completed"))
        self.assertFalse(can_transition("published", "in_progress"))

    def test_terminal_states_have_no_exit(self) -> None:
        for status in ("completed", "cancelled"):
            self.assertTrue(flow_policy.is_terminal(status))
            self.assertEqual(next_statuses(status), [])
            self.assertFalse(can_transition(status, "published"))
        self.assertFalse(flow_policy.is_terminal("draft"))

    def test_on_hold_returns_to_prior_state_only(self) -> None:
        self.assertTrue(can_transition("published", "on_hold"))
        self.assertTrue(can_transition("in_progress", "on_hold"))
        self.assertFalse(can_transition("draft", "on_hold"))

        self.assertEqual(next_statuses("on_hold", status_before_hold="published"), ["published", "cancelled"])
        self.assertTrue(can_transition("on_hold", "in_progress", status_before_hold="in_progress"))
        self.assertFalse(can_transition("on_hold", "in_progress", status_before_hold="published"))
        self.assertFalse(can_transition("on_hold", "published"))

    def test_quotations_open_only_while_published(self) -> None:
        self.assertTrue(flow_policy.is_open_for_quotations("published"))
        for status in ("draft", "in_progress", "on_hold", "completed", "cancelled"):
            self.assertFalse(flow_policy.is_open_for_quotations(status))

    def test_acceptance_allowed_while_published_or_on_hold(self) -> None:
        self.assertTrue(flow_policy.can_accept_quotations("published"))
        self.assertTrue(flow_policy.can_accept_quotations("on_hold"))
        self.assertFalse(flow_policy.can_accept_quotations("in_progress"))
        self.assertFalse(flow_policy.can_accept_quotations("draft"))

    def test_flow_meta_shape(self) -> None:
        meta = flow_policy.flow_meta("draft")
        self.assertEqual(meta["next_statuses"], ["published", "cancelled"])
        self.assertEqual(meta["primary_action"], "publish")
        self.assertFalse(meta["terminal"])


if __name__ == "__main__":
    unittest.main()
