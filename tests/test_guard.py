from __future__ import annotations

import copy
import linecache
import pickle

import pytest

from must_destroy import Destroy, GuardConsumedError, GuardState, MustDestroy
from must_destroy.registry import LeakRegistry


class _Recorder:
    def __init__(self, result: object = None) -> None:
        self.calls: list[object] = []
        self.result = result
        self.label = "recorder"

    def destroy(self, args: object, /) -> object:
        self.calls.append(args)
        return self.result


class _ReadmeItem:
    def __init__(self) -> None:
        self.destroyed = False

    def destroy(self, args: tuple[str, int], /) -> None:
        assert args[0] == "Test String"
        assert args[1] == 12
        self.destroyed = True


class _TeardownFailed(Exception):
    pass


class _Failing:
    def destroy(self, args: str, /) -> None:
        raise _TeardownFailed(args)


def test_destroy_forwards_args_once_and_returns_result() -> None:
    sentinel = object()
    inner = _Recorder(result=sentinel)
    guard = MustDestroy(inner)
    assert guard.state is GuardState.ARMED

    args = {"flush": True}
    out = guard.destroy(args)

    assert out is sentinel
    assert inner.calls == [args]
    assert inner.calls[0] is args
    assert guard.state is GuardState.DISARMED
    assert guard.armed is False


def test_readme_scenario_destroy_tuple() -> None:
    inner = _ReadmeItem()
    guard = MustDestroy(inner)
    guard.destroy(("Test String", 12))
    assert inner.destroyed is True


def test_destroy_with_packs_positional_args() -> None:
    inner = _ReadmeItem()
    MustDestroy(inner).destroy_with("Test String", 12)
    assert inner.destroyed is True

    empty = _Recorder()
    MustDestroy(empty).destroy_with()
    assert empty.calls == [()]


def test_teardown_failure_propagates_unchanged_and_guard_stays_disarmed(
    registry: LeakRegistry,
) -> None:
    guard = MustDestroy(_Failing())
    with pytest.raises(_TeardownFailed, match="bye"):
        guard.destroy("bye")
    assert guard.state is GuardState.DISARMED
    del guard
    assert registry.leaks == []


def test_double_destroy_is_rejected() -> None:
    inner = _Recorder()
    guard = MustDestroy(inner)
    guard.destroy(1)
    with pytest.raises(GuardConsumedError, match="destroy"):
        guard.destroy(2)
    assert inner.calls == [1]


def test_value_and_attribute_delegation_while_armed() -> None:
    inner = _Recorder()
    guard = MustDestroy(inner)
    assert guard.value is inner
    assert guard.label == "recorder"
    with pytest.raises(AttributeError):
        _ = guard.missing_attribute
    guard.destroy(None)
    with pytest.raises(GuardConsumedError):
        _ = guard.value
    with pytest.raises(GuardConsumedError):
        _ = guard.label


def test_into_inner_returns_value_without_teardown() -> None:
    inner = _Recorder()
    guard = MustDestroy(inner)
    out = guard.into_inner()
    assert out is inner
    assert inner.calls == []
    assert guard.state is GuardState.DISARMED
    with pytest.raises(GuardConsumedError, match="into_inner"):
        guard.into_inner()


def test_transfer_moves_ownership_to_new_guard() -> None:
    inner = _Recorder()
    first = MustDestroy(inner)
    second = first.transfer()

    assert first.state is GuardState.DISARMED
    assert second.armed is True
    assert second.guard_id != first.guard_id
    with pytest.raises(GuardConsumedError):
        first.destroy(None)

    second.destroy("done")
    assert inner.calls == ["done"]


def test_guard_cannot_be_copied_or_pickled() -> None:
    guard = MustDestroy(_Recorder())
    with pytest.raises(TypeError, match="copied"):
        copy.copy(guard)
    with pytest.raises(TypeError, match="copied"):
        copy.deepcopy(guard)
    with pytest.raises(TypeError, match="pickled"):
        pickle.dumps(guard)
    guard.destroy(None)


def test_value_without_destroy_is_rejected(registry: LeakRegistry) -> None:
    with pytest.raises(TypeError, match="does not implement destroy"):
        MustDestroy(object())
    assert registry.live_armed() == 0
    assert registry.leaks == []


def test_guard_itself_implements_destroy() -> None:
    inner = _Recorder(result="inner-result")
    outer = MustDestroy(MustDestroy(inner))
    assert isinstance(outer.value, Destroy)
    assert outer.destroy("args") == "inner-result"
    assert inner.calls == ["args"]


def test_repr_shows_state() -> None:
    guard = MustDestroy(_Recorder())
    assert "state=armed" in repr(guard)
    guard.destroy(None)
    assert "state=disarmed" in repr(guard)


def test_attribute_writes_go_to_wrapped_value() -> None:
    inner = _Recorder()
    guard = MustDestroy(inner)

    guard.label = "renamed"
    assert inner.label == "renamed"
    assert "label" not in vars(guard)
    assert guard.label == "renamed"

    del guard.label
    assert not hasattr(inner, "label")

    guard.destroy(None)
    with pytest.raises(GuardConsumedError, match="set label"):
        guard.label = "late"
    with pytest.raises(GuardConsumedError):
        _ = guard.label
    assert not hasattr(inner, "label")


def test_guard_properties_are_not_forwarded() -> None:
    inner = _Recorder()
    guard = MustDestroy(inner)
    with pytest.raises(AttributeError):
        guard.armed = False
    assert guard.armed is True
    assert "armed" not in vars(inner)
    guard.destroy(None)


def test_consumed_guard_reports_attributes_missing() -> None:
    guard = MustDestroy(_Recorder())
    assert hasattr(guard, "label")
    guard.destroy(None)

    assert hasattr(guard, "label") is False
    assert getattr(guard, "label", "fallback") == "fallback"
    assert isinstance(GuardConsumedError(guard_id="x", operation="read"), AttributeError)


def test_creation_site_does_not_read_source_lines(
    monkeypatch: pytest.MonkeyPatch,
) -> None:
    lookups: list[str] = []
    monkeypatch.setattr(linecache, "getline", lambda *a, **k: lookups.append("getline") or "")
    monkeypatch.setattr(linecache, "checkcache", lambda *a, **k: lookups.append("checkcache"))

    guard = MustDestroy(_Recorder())
    guard.destroy(None)

    assert lookups == []
