import pytest

from routedns.metrics import (
    FailRouterMetrics,
    RouterMetrics,
    get_var_int,
    get_var_map,
)


def test_var_int_is_shared_by_name():
    a = get_var_int("test", "shared-int", "count")
    b = get_var_int("test", "shared-int", "count")
    assert a is b
    a.set(0)
    a.add(3)
    b.add(2)
    assert a.value() == 5


def test_var_int_set_overrides():
    v = get_var_int("test", "set-int", "count")
    v.add(10)
    v.set(4)
    assert v.value() == 4


def test_var_map_add_and_get():
    m = get_var_map("test", "map", "route")
    m.add("r1", 1)
    m.add("r1", 2)
    assert m.get("r1") == 3
    assert m.get("missing") is None


def test_type_mismatch_raises():
    get_var_int("test", "mixed", "x")
    with pytest.raises(TypeError):
        get_var_map("test", "mixed", "x")


def test_router_metrics_available():
    m = RouterMetrics("metrics-router", 3)
    assert m.available.value() == 3
    assert m.available is get_var_int("router", "metrics-router", "available")
    assert m.route is get_var_map("router", "metrics-router", "route")


def test_fail_router_metrics_failover():
    m = FailRouterMetrics("metrics-fail", 2)
    m.failover.add(1)
    assert get_var_int("router", "metrics-fail", "failover").value() >= 1
    assert m.available.value() == 2