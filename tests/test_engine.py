"""End-to-end tests of the Reconciler facade against the in-memory cloud."""

import pytest
from fakes import FakeCloud
from netreconciler.core.errors import DeadlineExceededError, FatalAPIError, ValidationError
from netreconciler.domain.models import AttachmentObserved, AttachmentSpec, RuleSpec
from netreconciler.engine import Reconciler
from netreconciler.execution import status_is
from netreconciler.planning import OperationKind


def tcp(port: str, cidr: str = "0.0.0.0/0") -> RuleSpec:
    return RuleSpec.build(protocol="tcp", port_range=port, cidr=cidr)


@pytest.fixture
def cloud():
    cloud = FakeCloud()
    cloud.add_nic("srv-1", "N1", ["sg-a"])
    cloud.add_address("fip-1")
    return cloud


@pytest.fixture
def reconciler(cloud, fast_settings):
    return Reconciler.from_client(cloud, fast_settings)


def desired_attachments():
    return [
        AttachmentSpec.build("N1", ["sg-b", "sg-a"], primary=True),
        AttachmentSpec.build("N2", ["sg-a"], floating_ip_id="fip-1"),
    ]


class TestConvergeInstance:
    @pytest.mark.asyncio
    async def test_converges_and_presents_caller_order(self, cloud, reconciler):
        outcome = await reconciler.converge_instance("srv-1", desired_attachments())

        assert outcome.changed
        assert outcome.result.success
        assert outcome.status == "ACTIVE"
        assert [att.network_id for att in outcome.entities] == ["N1", "N2"]
        first, second = outcome.entities
        assert first.primary is True
        assert first.group_order == ("sg-b", "sg-a")
        assert second.floating_ip_id == "fip-1"
        assert second.floating_ip == cloud.addresses["fip-1"]["address"]

    @pytest.mark.asyncio
    async def test_second_run_performs_no_operations(self, cloud, reconciler):
        await reconciler.converge_instance("srv-1", desired_attachments())
        calls_before = len(cloud.calls)

        outcome = await reconciler.converge_instance("srv-1", desired_attachments())

        assert not outcome.changed
        mutating = {
            "create_attachment",
            "delete_attachment",
            "update_attachment_groups",
            "associate",
            "disassociate",
        }
        assert not [name for name, _ in cloud.calls[calls_before:] if name in mutating]
        assert not [name for name, _ in cloud.calls[calls_before:] if name == "get_status"]

    @pytest.mark.asyncio
    async def test_waits_for_instance_to_become_active(self, cloud, reconciler):
        cloud.statuses["srv-1"] = ["BUILD", "BUILD", "ACTIVE"]

        outcome = await reconciler.converge_instance("srv-1", desired_attachments())

        assert outcome.status == "ACTIVE"
        assert len(cloud.calls_to("get_status")) == 3

    @pytest.mark.asyncio
    async def test_times_out_when_instance_never_settles(self, cloud, reconciler):
        cloud.statuses["srv-1"] = ["ERROR"]

        with pytest.raises(DeadlineExceededError):
            await reconciler.converge_instance("srv-1", desired_attachments(), timeout=0.1)

    @pytest.mark.asyncio
    async def test_fatal_error_is_raised(self, cloud, reconciler):
        cloud.fail_always("create_attachment", FatalAPIError("Quota exceeded"))

        with pytest.raises(FatalAPIError):
            await reconciler.converge_instance("srv-1", desired_attachments())

        # N1 groups were not touched: the plan aborted on the first step
        assert cloud.calls_to("update_attachment_groups") == []

    @pytest.mark.asyncio
    async def test_invalid_desired_state_is_rejected_before_any_mutation(self, cloud, reconciler):
        desired = [AttachmentSpec.build("N1", primary=True), AttachmentSpec.build("N2", primary=True)]

        with pytest.raises(ValidationError):
            await reconciler.converge_instance("srv-1", desired)

        assert [name for name, _ in cloud.calls] == ["list_attachments"]


class TestConvergeRules:
    @pytest.mark.asyncio
    async def test_converges_rules_in_caller_order(self, cloud, reconciler):
        cloud.add_rule("sg-web", tcp("22", "10.0.0.0/8"))
        desired = [tcp("443"), tcp("80"), RuleSpec.build(protocol="any", cidr="0.0.0.0/0", direction="egress")]

        outcome = await reconciler.converge_rules("sg-web", desired)

        assert outcome.plan.kinds()[0] is OperationKind.DELETE_RULE
        assert [rule.key for rule in outcome.entities] == [rule.key for rule in desired]

        again = await reconciler.converge_rules("sg-web", desired)
        assert not again.changed

    @pytest.mark.asyncio
    async def test_full_replace_strategy(self, cloud, reconciler):
        cloud.add_rule("sg-web", tcp("22"))

        outcome = await reconciler.converge_rules("sg-web", [tcp("22"), tcp("80")], "full_replace")

        assert outcome.plan.counts() == {"delete_rule": 1, "create_rule": 2}
        assert sorted(str(rule.spec.port_range) for rule in cloud.rules["sg-web"]) == ["22", "80"]


class TestFacade:
    def test_reconcile_builds_plan(self, reconciler):
        plan = reconciler.reconcile(
            "srv-1",
            [AttachmentSpec.build("N2")],
            [AttachmentObserved("N1", "nic-1")],
        )

        assert plan.kinds() == [OperationKind.CREATE_ATTACHMENT, OperationKind.DELETE_ATTACHMENT]

    def test_reconcile_rules_uses_configured_strategy(self, reconciler):
        plan = reconciler.reconcile_rules("sg-web", [tcp("80")], [])

        assert plan.metadata["strategy"] == "surgical"

    def test_reorder_to_match_uses_entity_keys(self, reconciler):
        fresh = [AttachmentObserved("N1"), AttachmentObserved("N3"), AttachmentObserved("N2")]

        ordered = reconciler.reorder_to_match(["N3", "N1", "N2"], fresh)

        assert [att.network_id for att in ordered] == ["N3", "N1", "N2"]

    @pytest.mark.asyncio
    async def test_wait_for_status_with_custom_predicate(self, cloud, reconciler):
        cloud.statuses["srv-1"] = ["SHUTOFF"]

        status = await reconciler.wait_for_status("srv-1", status_is("SHUTOFF"), timeout=1)

        assert status == "SHUTOFF"
