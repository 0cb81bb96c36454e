import pytest

from common.exceptions import BootstrapError
from configure.ufw_configurator import (
    FirewallRule,
    FirewallStatus,
    build_rule_set,
    configure_firewall,
    enable_firewall,
    parse_added_rules,
)
from deploy.roles import DeploymentRole


def test_build_rule_set_primary(make_settings):
    settings = make_settings(firewall={"ssh_port": 2222, "extra_tcp_ports": [443, 9000]})

    rules = build_rule_set(settings, DeploymentRole.PRIMARY)

    assert [str(rule) for rule in rules] == [
        "limit 2222/tcp",
        "allow 80/tcp",
        "allow 443/tcp",
        "allow 5055/tcp",
        "allow 8502/tcp",
        "allow 9000/tcp",
    ]


def test_build_rule_set_web_defaults_application_port(app_settings):
    rules = build_rule_set(app_settings, DeploymentRole.WEB)

    assert FirewallRule(8501) in rules
    assert FirewallRule(5055) not in rules


def test_build_rule_set_web_configured_port(make_settings):
    settings = make_settings(app={"streamlit_port": 8600})

    assert FirewallRule(8600) in build_rule_set(settings, DeploymentRole.WEB)


def test_parse_added_rules():
    output = (
        "Added user rules (see 'ufw status' for running firewall):\n"
        "ufw limit 22/tcp\n"
        "ufw allow 80\n"
        "ufw allow 53/udp\n"
    )

    assert parse_added_rules(output) == {
        FirewallRule(22, "tcp", "limit"),
        FirewallRule(80),
        FirewallRule(53, "udp"),
    }


def test_enable_firewall_refuses_without_admin_rule(app_settings, mock_logger):
    admin_rule = FirewallRule(22, "tcp", "limit")

    with pytest.raises(BootstrapError):
        enable_firewall(
            FirewallStatus.INACTIVE, admin_rule, {FirewallRule(80)}, app_settings, mock_logger
        )
    with pytest.raises(BootstrapError):
        enable_firewall(FirewallStatus.INACTIVE, admin_rule, set(), app_settings, mock_logger)


def test_configure_firewall_declares_before_enabling(fake_host, app_settings):
    added = configure_firewall(DeploymentRole.PRIMARY, app_settings, {})

    assert [str(rule) for rule in added][:1] == ["limit 22/tcp"]
    ufw_calls = [call[1:] for call in fake_host.calls_starting_with("ufw")]
    limit_index = ufw_calls.index(["limit", "22/tcp"])
    enable_index = ufw_calls.index(["--force", "enable"])
    assert limit_index < enable_index
    assert fake_host.ufw_active is True
    assert fake_host.calls_starting_with("systemctl", "enable", "--now", "ufw")


def test_configure_firewall_converged_host(fake_host, app_settings):
    configure_firewall(DeploymentRole.PRIMARY, app_settings, {})
    fake_host.set_service("ufw", enabled=True, active=True)
    rule_count = len(fake_host.ufw_rules)
    fake_host.calls.clear()

    added = configure_firewall(DeploymentRole.PRIMARY, app_settings, {})

    assert added == []
    assert len(fake_host.ufw_rules) == rule_count
    assert not fake_host.calls_starting_with("ufw", "--force", "enable")
    assert not fake_host.calls_starting_with("ufw", "allow")
    assert not fake_host.calls_starting_with("systemctl", "enable")
