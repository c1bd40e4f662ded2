"""
Tests for value extraction from discovery output.
"""

from stepwise.core.models import Step
from stepwise.core.services.extractors import extract_value, extract_values, seeds_from_text


def _discovery(produces: list[str], extract: dict | None = None) -> Step:
    return Step.model_validate({
        "index": 0, "action_kind": "discovery", "command_template": "x",
        "produces": produces, "extract": extract or {},
    })


class TestWellKnown:
    def test_gateway_from_ip_route(self):
        out = "default via 192.168.1.1 dev wlan0 proto dhcp metric 600\n"
        assert extract_value(_discovery(["default_gateway"]), "default_gateway", out) == "192.168.1.1"

    def test_gateway_from_ipconfig(self):
        out = "   Default Gateway . . . . . . . . . : 10.0.0.1\n"
        assert extract_value(_discovery(["default_gateway"]), "default_gateway", out) == "10.0.0.1"

    def test_gateway_from_macos_route(self):
        out = "   route to: default\ndestination: default\n    gateway: 172.16.0.1\n"
        assert extract_value(_discovery(["default_gateway"]), "default_gateway", out) == "172.16.0.1"

    def test_local_ip_skips_loopback(self):
        out = "inet 127.0.0.1/8 scope host lo\ninet 192.168.1.23/24 brd 192.168.1.255\n"
        assert extract_value(_discovery(["local_ip"]), "local_ip", out) == "192.168.1.23"

    def test_subnet(self):
        out = "192.168.1.0/24 dev eth0 proto kernel scope link\n"
        assert extract_value(_discovery(["subnet_cidr"]), "subnet_cidr", out) == "192.168.1.0/24"

    def test_bare_address_line(self):
        assert extract_value(_discovery(["default_gateway"]), "default_gateway", "10.1.1.1\n") == "10.1.1.1"

    def test_unrelated_text_is_not_a_gateway(self):
        assert extract_value(_discovery(["default_gateway"]), "default_gateway", "no route\n") is None

    def test_zero_address_rejected(self):
        assert extract_value(_discovery(["default_gateway"]), "default_gateway", "0.0.0.0\n") is None


class TestGeneric:
    def test_custom_regex_wins(self):
        step = _discovery(["port"], {"port": r"open port (\d+)"})
        assert extract_value(step, "port", "port=1\nopen port 22\n") == "22"

    def test_custom_regex_no_match(self):
        step = _discovery(["port"], {"port": r"open port (\d+)"})
        assert extract_value(step, "port", "nothing") is None

    def test_keyed_line(self):
        out = "host: alpha\nuser = root\n"
        step = _discovery(["host", "user"])
        assert extract_values(step, out) == ({"host": "alpha", "user": "root"}, [])

    def test_first_line_for_single_name(self):
        assert extract_value(_discovery(["hostname"]), "hostname", "\n  box-01  \nother\n") == "box-01"

    def test_no_first_line_fallback_for_several_names(self):
        values, missing = extract_values(_discovery(["a", "b"]), "a=1\nsomething\n")
        assert values == {"a": "1"}
        assert missing == ["b"]

    def test_empty_output(self):
        assert extract_values(_discovery(["hostname"]), "") == ({}, ["hostname"])


class TestSeedsFromText:
    def test_cidr(self):
        assert seeds_from_text("scan the 10.0.0.0/24 network") == {"subnet_cidr": "10.0.0.0/24"}

    def test_ip(self):
        assert seeds_from_text("is 192.168.1.20 up?") == {"target_ip": "192.168.1.20"}

    def test_nothing(self):
        assert seeds_from_text("find my gateway") == {}
