"""Tests for CLI apply command against the in-memory cloud."""

import json

import pytest
from fakes import FakeCloud
from netreconciler.cli.apply import apply_command
from netreconciler.core.errors import ConfigurationError, ExitCode
from netreconciler.engine import Reconciler


@pytest.fixture
def cloud():
    cloud = FakeCloud()
    cloud.add_nic("srv-1", "N1", ["sg-a"], primary=True)
    cloud.add_address("fip-1")
    return cloud


@pytest.fixture
def reconciler(cloud, fast_settings):
    return Reconciler.from_client(cloud, fast_settings)


@pytest.fixture
def desired_file(tmp_path):
    path = tmp_path / "desired.yaml"
    path.write_text(
        """
instance_id: srv-1
network_attachment:
  - network_id: N1
    primary: true
    security_group_ids: [sg-b, sg-a]
  - network_id: N2
    floating_ip_id: fip-1
"""
    )
    return str(path)


class TestApplyCommand:
    def test_json_output_reports_converged_state(self, desired_file, reconciler, capsys):
        exit_code = apply_command(desired_file, output_format="json", reconciler=reconciler)

        data = json.loads(capsys.readouterr().out)
        assert exit_code == ExitCode.SUCCESS
        assert data["result"]["success"] is True
        assert [att["network_id"] for att in data["entities"]] == ["N1", "N2"]
        assert data["entities"][0]["security_group_ids"] == ["sg-b", "sg-a"]
        assert data["entities"][1]["floating_ip_id"] == "fip-1"

    def test_text_output(self, desired_file, reconciler, capsys):
        apply_command(desired_file, reconciler=reconciler)

        out = capsys.readouterr().out
        assert "Converged state" in out
        assert "Applied 3 of 3 operations" in out

    def test_rules_document(self, tmp_path, cloud, reconciler):
        path = tmp_path / "rules.yaml"
        path.write_text(
            "security_group_id: sg-web\n"
            "ingress_rule:\n"
            "  - protocol: tcp\n"
            "    port_range: '443'\n"
            "    source_cidr: 0.0.0.0/0\n"
        )

        exit_code = apply_command(str(path), output_format="json", reconciler=reconciler)

        assert exit_code == ExitCode.SUCCESS
        assert len(cloud.rules["sg-web"]) == 1

    def test_document_without_target_is_rejected(self, tmp_path, cloud, reconciler):
        path = tmp_path / "desired.yaml"
        path.write_text("network_attachment:\n  - network_id: N1\n")

        with pytest.raises(ConfigurationError):
            apply_command(str(path), reconciler=reconciler)

        assert cloud.calls == []
