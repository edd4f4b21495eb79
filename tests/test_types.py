import pytest

from cxpnet.types import IPType, SocketOption, ip_address_type


@pytest.mark.parametrize(
    "address, expected",
    [
        ("127.0.0.1", IPType.IPV4),
        ("0.0.0.0", IPType.IPV4),
        ("::1", IPType.IPV6),
        ("::", IPType.IPV6),
        ("", IPType.INVALID),
        ("localhost", IPType.INVALID),
        ("256.1.1.1", IPType.INVALID),
        ("1.2.3", IPType.INVALID),
        (":::1", IPType.INVALID),
    ],
)
def test_ip_address_type(address, expected):
    assert ip_address_type(address) is expected


@pytest.mark.parametrize(
    "value, expected",
    [
        (0, SocketOption.NONE),
        (1, SocketOption.REUSE_PORT),
        (2, SocketOption.REUSE_ADDR),
        (3, SocketOption.REUSE_ADDR | SocketOption.REUSE_PORT),
    ],
)
def test_socket_option_from_value(value, expected):
    option = SocketOption(value)
    assert option == expected
    assert int(option) == value


def test_socket_option_flags_combine():
    combined = SocketOption(3)
    assert combined & SocketOption.REUSE_ADDR == SocketOption.REUSE_ADDR
    assert combined & SocketOption.REUSE_PORT == SocketOption.REUSE_PORT
    assert SocketOption(0) & SocketOption.REUSE_PORT == SocketOption.NONE