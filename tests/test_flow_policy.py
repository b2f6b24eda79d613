import unittest

from erp_obras.procurement.flow_policy import (
    ACTION_LABELS,
    FLOW_POLICY,
    PROCESS_STAGES,
    action_allowed,
    build_process_steps,
    flow_meta,
    stage_for_order_status,
)
from erp_obras.ui_strings import status_keys_for_group


class FlowPolicyTest(unittest.TestCase):
    def test_required_process_stages_exist(self) -> None:
        keys = [item["key"] for item in PROCESS_STAGES]
        self.assertEqual(keys, ["requisicao", "cotacao", "aprovacao", "entrega"])

    def test_every_status_group_has_a_policy(self) -> None:
        for stage_name in ("requisicao", "conta_pagar", "conta_receber"):
            self.assertEqual(set(FLOW_POLICY[stage_name]), set(status_keys_for_group(stage_name)), stage_name)

    def test_all_stage_statuses_have_actions(self) -> None:
        for stage_name, status_map in FLOW_POLICY.items():
            for status_name, policy in status_map.items():
                actions = policy.get("allowed_actions") or []
                self.assertTrue(actions, f"acoes vazias em {stage_name}:{status_name}")
                for action in actions:
                    self.assertIn(action, ACTION_LABELS, f"acao sem label: {action}")

    def test_primary_action_is_in_allowed_actions(self) -> None:
        for stage_name, status_map in FLOW_POLICY.items():
            for status_name, policy in status_map.items():
                primary_action = policy.get("primary_action")
                if primary_action:
                    self.assertIn(primary_action, policy.get("allowed_actions") or [], f"{stage_name}:{status_name}")

    def test_closed_orders_accept_no_quote_changes(self) -> None:
        for status in ("approved", "rejected", "delivered"):
            for action in ("add_quote", "select_quote", "update_quote_details", "approve_order", "reject_order"):
                self.assertFalse(action_allowed("requisicao", status, action), f"{status}:{action}")
        self.assertTrue(action_allowed("requisicao", "approved", "mark_delivered"))
        self.assertFalse(action_allowed("conta_pagar", "paid", "cancel_payable"))

    def test_unknown_status_has_no_actions(self) -> None:
        meta = flow_meta("requisicao", "archived")
        self.assertEqual(meta["allowed_actions"], [])
        self.assertIsNone(meta["primary_action"])
        self.assertIsNone(meta["primary_action_label"])
        self.assertFalse(action_allowed("requisicao", None, "add_quote"))

    def test_flow_meta_labels_primary_action(self) -> None:
        meta = flow_meta("requisicao", "approved")
        self.assertEqual(meta["primary_action"], "mark_delivered")
        self.assertEqual(meta["primary_action_label"], "Confirmar entrega")

    def test_process_steps_follow_order_status(self) -> None:
        self.assertEqual(stage_for_order_status("pending_quotes"), "cotacao")
        steps = build_process_steps("ready_for_approval")
        self.assertEqual([step["state"] for step in steps], ["completed", "completed", "current", "future"])
        delivered = build_process_steps("delivered")
        self.assertTrue(all(step["state"] == "completed" for step in delivered))


if __name__ == "__main__":
    unittest.main()
