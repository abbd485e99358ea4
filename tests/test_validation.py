import pytest

from gatekeeper.errors import InputValidationError
from gatekeeper.utils.validation import is_eth_address, parse_ipv4, parse_port, require_eth_address


def test_eth_address_shape():
    assert is_eth_address("0x" + "a" * 40)
    assert is_eth_address("0x" + "AbCdEf0123" * 4)
    assert not is_eth_address("0x" + "a" * 39)
    assert not is_eth_address("a" * 42)
    assert not is_eth_address("0x" + "g" * 40)
    assert not is_eth_address(None)
    assert require_eth_address("  0x" + "b" * 40 + " ") == "0x" + "b" * 40
    with pytest.raises(InputValidationError):
        require_eth_address("0x123")


def test_ip_and_port():
    assert parse_ipv4(" 10.0.0.1 ") == "10.0.0.1"
    with pytest.raises(InputValidationError):
        parse_ipv4("10.0.0.256")

    assert parse_port("") == 8080
    assert parse_port(None) == 8080
    assert parse_port("40400") == 40400
    for bad in ("0", "65536", "80a", "-1"):
        with pytest.raises(InputValidationError):
            parse_port(bad)
