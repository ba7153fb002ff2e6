import pytest

from skywire.stcp.porter import PORTER_MIN_EPHEMERAL, Porter, PortsExhaustedError


def test_default_minimum_bounds_ephemeral_ports():
    p = Porter()
    ports = [p.reserve_ephemeral()[0] for _ in range(3)]
    assert all(49152 <= port <= 0xFFFF for port in ports)
    assert min(ports) >= PORTER_MIN_EPHEMERAL


def test_reserve_and_free():
    p = Porter()
    free = p.reserve(10)
    assert callable(free)
    assert p.reserve(10) is None
    free()
    assert p.reserve(10) is not None and p.reserve(10) is None


def test_port_zero_is_never_free():
    assert Porter().reserve(0) is None


def test_free_only_once():
    p = Porter()
    free = p.reserve(7)
    free()
    assert p.reserve(7) is not None
    free()
    assert p.reserve(7) is None


def test_ephemeral_in_range_and_distinct():
    p = Porter()
    first, _ = p.reserve_ephemeral()
    second, _ = p.reserve_ephemeral()
    assert PORTER_MIN_EPHEMERAL <= first <= 0xFFFF
    assert PORTER_MIN_EPHEMERAL <= second <= 0xFFFF
    assert first != second


def test_ephemeral_skips_reserved():
    p = Porter(65530)
    assert p.reserve(65531) is not None
    ports = {p.reserve_ephemeral()[0] for _ in range(5)}
    assert 65531 not in ports
    assert all(65530 <= port <= 65535 for port in ports)


def test_ephemeral_wraps_around():
    p = Porter(65534)
    ports = {p.reserve_ephemeral()[0], p.reserve_ephemeral()[0]}
    assert ports == {65534, 65535}


def test_ephemeral_exhausted():
    p = Porter(65534)
    p.reserve(65534)
    p.reserve(65535)
    with pytest.raises(PortsExhaustedError):
        p.reserve_ephemeral()