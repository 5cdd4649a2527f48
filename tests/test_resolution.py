"""Tests for scoped resolution of route graphs."""

from collections import Counter
from collections.abc import Callable
from typing import Any

import pytest

from routegraph import (
    CyclicRouteError,
    NoRouteForError,
    ReleaseFailedError,
    Resolution,
    ResolutionFailure,
    RouteGraph,
    RouteGraphError,
    Rule,
    ScopeClosedError,
    ScopeStillOpenError,
    TypeKey,
    TypeMismatchError,
    Value,
    key_of,
    open_resolution,
)

# --- Fixtures ---

A = key_of(str, "a")
B = key_of(str, "b")
C = key_of(str, "c")
D = key_of(str, "d")
E = key_of(str, "e")


class Recorder:
    """Counts rule invocations and records releases in order."""

    def __init__(self) -> None:
        self.calls: Counter[str] = Counter()
        self.released: list[str] = []

    def root(self, name: str) -> Callable[[], Value[str]]:
        def produce() -> Value[str]:
            self.calls[name] += 1
            return Value.of(name, self.released.append)

        produce.__name__ = f"make_{name}"
        return produce

    def join(self, name: str) -> Callable[..., Value[str]]:
        def produce(*payloads: str) -> Value[str]:
            self.calls[name] += 1
            return Value.of(f"{name}({','.join(payloads)})", self.released.append)

        produce.__name__ = f"make_{name}"
        return produce


@pytest.fixture
def recorder() -> Recorder:
    return Recorder()


@pytest.fixture
def diamond(recorder: Recorder) -> RouteGraph:
    """A is shared by B and C, which both feed D; E depends on A only."""
    return (
        RouteGraph.builder()
        .add(Rule.start(A, recorder.root("a")))
        .add(Rule.bridge(A, B, recorder.join("b")))
        .add(Rule.bridge(A, C, recorder.join("c")))
        .add(Rule.merge(B, C, D, recorder.join("d")))
        .add(Rule.bridge(A, E, recorder.join("e")))
        .build()
    )


# --- Tests ---


class TestResolve:
    """Tests for evaluating a target."""

    def test_root_rule_alone(self) -> None:
        graph = RouteGraph.builder().add(Rule.start(A, lambda: "x")).build()
        with graph.open(A) as scope:
            assert scope.current() == "x"
            assert scope.owned_keys == (A,)

    def test_plain_results_are_wrapped(self) -> None:
        graph = RouteGraph.builder().add(Rule.start(A, lambda: "x")).build()
        with graph.open(A) as scope:
            assert scope.get(A) == "x"

    def test_sources_in_declaration_order(self, diamond: RouteGraph) -> None:
        with diamond.open(D) as scope:
            assert scope.current() == "d(b(a),c(a))"

    def test_shared_source_evaluated_once(self, diamond: RouteGraph, recorder: Recorder) -> None:
        """Should evaluate a source shared by two branches exactly once."""
        with diamond.open(D):
            assert recorder.calls == Counter({"a": 1, "b": 1, "c": 1, "d": 1})

    def test_only_required_rules_run(self, diamond: RouteGraph, recorder: Recorder) -> None:
        with diamond.open(B) as scope:
            assert scope.owned_keys == (A, B)
        assert "c" not in recorder.calls
        assert "d" not in recorder.calls
        assert "e" not in recorder.calls

    def test_owned_keys_in_creation_order(self, diamond: RouteGraph) -> None:
        with diamond.open(D) as scope:
            assert scope.owned_keys == (A, B, C, D)

    def test_open_resolution_function(self, diamond: RouteGraph) -> None:
        with open_resolution(diamond, E) as scope:
            assert scope.current() == "e(a)"
            assert scope.parent is None
            assert scope.target == E
            assert scope.graph is diamond

    def test_get_unknown_key(self, diamond: RouteGraph) -> None:
        with diamond.open(B) as scope:
            assert C not in scope
            with pytest.raises(KeyError):
                scope.get(C)


class TestChildResolution:
    """Tests for nested scopes sharing cached values."""

    def test_child_reuses_parent_values(self, diamond: RouteGraph, recorder: Recorder) -> None:
        with diamond.open(A) as root, root.open(D) as child:
            assert child.current() == "d(b(a),c(a))"
            assert child.get(A) == root.current()
            assert child.owned_keys == (B, C, D)
            assert child.parent is root
        assert recorder.calls["a"] == 1

    def test_siblings_share_parent_payload(self, diamond: RouteGraph, recorder: Recorder) -> None:
        """Should give sibling scopes the identical parent payload and recompute their own values."""
        with diamond.open(A) as root:
            with root.open(B) as first:
                first_a = first.get(A)
            with root.open(B) as second:
                second_a = second.get(A)
            assert first_a is second_a
        assert recorder.calls["a"] == 1
        assert recorder.calls["b"] == 2

    def test_child_close_leaves_parent_values(self, diamond: RouteGraph, recorder: Recorder) -> None:
        with diamond.open(A) as root:
            with root.open(E):
                pass
            assert recorder.released == ["e(a)"]
            assert root.get(A) == "a"
            assert not root.closed
        assert recorder.released == ["e(a)", "a"]

    def test_three_levels(self, diamond: RouteGraph, recorder: Recorder) -> None:
        with diamond.open(A) as root, root.open(B) as middle, middle.open(D) as leaf:
            assert leaf.owned_keys == (C, D)
            assert leaf.get(B) == "b(a)"
        assert recorder.calls == Counter({"a": 1, "b": 1, "c": 1, "d": 1})
        assert recorder.released == ["d(b(a),c(a))", "c(a)", "b(a)", "a"]

    def test_contains_looks_through_parents(self, diamond: RouteGraph) -> None:
        with diamond.open(A) as root, root.open(E) as child:
            assert A in child
            assert E in child
            assert E not in root


class TestRelease:
    """Tests for closing resolutions."""

    def test_reverse_creation_order(self, diamond: RouteGraph, recorder: Recorder) -> None:
        with diamond.open(D):
            pass
        assert recorder.released == ["d(b(a),c(a))", "c(a)", "b(a)", "a"]

    def test_inert_values_are_skipped(self) -> None:
        released: list[str] = []
        graph = (
            RouteGraph.builder()
            .add(Rule.start(A, lambda: Value.of("a", released.append)))
            .add(Rule.bridge(A, B, lambda a: a + "!"))
            .build()
        )
        with graph.open(B):
            pass
        assert released == ["a"]

    def test_close_twice_releases_once(self, diamond: RouteGraph, recorder: Recorder) -> None:
        scope = diamond.open(B)
        scope.close()
        scope.close()
        assert recorder.released == ["b(a)", "a"]
        assert scope.closed

    def test_context_manager_releases_on_exception(self, diamond: RouteGraph, recorder: Recorder) -> None:
        with pytest.raises(RuntimeError, match="boom"), diamond.open(B):
            msg = "boom"
            raise RuntimeError(msg)
        assert recorder.released == ["b(a)", "a"]

    def test_release_failures_are_aggregated(self) -> None:
        released: list[str] = []

        def fail(payload: str) -> None:
            msg = f"cannot release {payload}"
            raise OSError(msg)

        graph = (
            RouteGraph.builder()
            .add(Rule.start(A, lambda: Value.of("a", fail)))
            .add(Rule.bridge(A, B, lambda a: Value.of("b", released.append)))
            .add(Rule.bridge(B, C, lambda b: Value.of("c", fail)))
            .build()
        )
        scope = graph.open(C)
        with pytest.raises(ReleaseFailedError) as exc_info:
            scope.close()

        error = exc_info.value
        assert isinstance(error, RouteGraphError)
        assert [str(e) for e in error.exceptions] == ["cannot release c", "cannot release a"]
        assert all(isinstance(e, OSError) for e in error.exceptions)
        assert released == ["b"]
        assert scope.closed

    def test_release_failure_notes_the_key(self) -> None:
        def fail(_: str) -> None:
            msg = "busy"
            raise OSError(msg)

        graph = RouteGraph.builder().add(Rule.start(A, lambda: Value.of("a", fail))).build()
        scope = graph.open(A)
        with pytest.raises(ReleaseFailedError) as exc_info:
            scope.close()
        assert exc_info.value.exceptions[0].__notes__ == ["while releasing a:str"]

    def test_close_parent_with_open_child(self, diamond: RouteGraph, recorder: Recorder) -> None:
        root = diamond.open(A)
        child = root.open(B)
        with pytest.raises(ScopeStillOpenError):
            root.close()
        assert not root.closed
        assert recorder.released == []

        child.close()
        root.close()
        assert recorder.released == ["b(a)", "a"]

    def test_open_from_closed_scope(self, diamond: RouteGraph) -> None:
        scope = diamond.open(A)
        scope.close()
        with pytest.raises(ScopeClosedError):
            scope.open(B)

    def test_exception_closes_open_children(self, diamond: RouteGraph, recorder: Recorder) -> None:
        """Should release children left open and keep the original exception."""
        with pytest.raises(RuntimeError, match="boom") as exc_info, diamond.open(A) as root:
            child = root.open(B)
            grandchild = child.open(D)
            msg = "boom"
            raise RuntimeError(msg)

        assert not isinstance(exc_info.value, ScopeStillOpenError)
        assert root.closed
        assert child.closed
        assert grandchild.closed
        assert recorder.released == ["d(b(a),c(a))", "c(a)", "b(a)", "a"]

    def test_exception_closes_siblings_newest_first(self, diamond: RouteGraph, recorder: Recorder) -> None:
        with pytest.raises(RuntimeError), diamond.open(A) as root:
            root.open(B)
            root.open(E)
            msg = "boom"
            raise RuntimeError(msg)

        assert recorder.released == ["e(a)", "b(a)", "a"]

    def test_exception_keeps_release_errors_as_notes(self) -> None:
        def fail(_: str) -> None:
            msg = "stuck"
            raise OSError(msg)

        graph = (
            RouteGraph.builder()
            .add(Rule.start(A, lambda: "a"))
            .add(Rule.bridge(A, B, lambda a: Value.of(a + "b", fail)))
            .build()
        )
        with pytest.raises(RuntimeError) as exc_info, graph.open(A) as root:
            root.open(B)
            msg = "boom"
            raise RuntimeError(msg)

        assert any("stuck" in note for note in exc_info.value.__notes__)

    def test_normal_exit_with_open_child_still_fails(self, diamond: RouteGraph) -> None:
        with pytest.raises(ScopeStillOpenError), diamond.open(A) as root:
            root.open(B)


class TestResolutionErrors:
    """Tests for failures while opening a resolution."""

    def test_direct_cycle(self) -> None:
        graph = RouteGraph.builder().add(Rule.bridge(A, A, lambda a: a)).build()
        with pytest.raises(CyclicRouteError) as exc_info:
            graph.open(A)
        assert exc_info.value.cycle == (A, A)

    def test_indirect_cycle(self) -> None:
        graph = (
            RouteGraph.builder()
            .add(Rule.bridge(B, A, lambda b: b))
            .add(Rule.bridge(C, B, lambda c: c))
            .add(Rule.bridge(A, C, lambda a: a))
            .build()
        )
        with pytest.raises(CyclicRouteError, match="Cyclic route: a:str -> b:str -> c:str -> a:str"):
            graph.open(A)

    def test_no_route_for_target(self) -> None:
        graph = RouteGraph.builder().build()
        with pytest.raises(NoRouteForError) as exc_info:
            graph.open(A)
        assert exc_info.value.key == A
        assert exc_info.value.required_by == ()

    def test_no_route_for_transitive_source(self) -> None:
        graph = (
            RouteGraph.builder()
            .add(Rule.bridge(A, B, lambda a: a))
            .add(Rule.bridge(B, C, lambda b: b))
            .build(validate=False)
        )
        with pytest.raises(NoRouteForError) as exc_info:
            graph.open(C)
        assert exc_info.value.key == A
        assert exc_info.value.required_by == (C, B)
        assert "required by c:str -> b:str" in str(exc_info.value)

    def test_failing_rule(self) -> None:
        def broken(a: str) -> str:
            raise ZeroDivisionError(a)

        graph = RouteGraph.builder().add(Rule.start(A, lambda: "a")).add(Rule.bridge(A, B, broken)).build()
        with pytest.raises(ResolutionFailure) as exc_info:
            graph.open(B)
        assert exc_info.value.key == B
        assert isinstance(exc_info.value.__cause__, ZeroDivisionError)
        assert str(exc_info.value).startswith("b:str: Rule broken failed")

    def test_resolution_failure_gets_destination_key(self) -> None:
        def refuse() -> str:
            msg = "refused"
            raise ResolutionFailure(msg)

        graph = RouteGraph.builder().add(Rule.start(A, refuse)).build()
        with pytest.raises(ResolutionFailure) as exc_info:
            graph.open(A)
        assert exc_info.value.key == A
        assert str(exc_info.value) == "a:str: refused"

    def test_failure_releases_partial_results(self, recorder: Recorder) -> None:
        """Should release everything computed before a rule failed."""

        def broken(*_: Any) -> str:
            msg = "no"
            raise RuntimeError(msg)

        graph = (
            RouteGraph.builder()
            .add(Rule.start(A, recorder.root("a")))
            .add(Rule.bridge(A, B, recorder.join("b")))
            .add(Rule.merge(A, B, C, broken))
            .build()
        )
        with pytest.raises(ResolutionFailure):
            graph.open(C)
        assert recorder.released == ["b(a)", "a"]

    def test_failed_child_keeps_parent_open(self, recorder: Recorder) -> None:
        def broken(_: str) -> str:
            msg = "no"
            raise RuntimeError(msg)

        graph = (
            RouteGraph.builder()
            .add(Rule.start(A, recorder.root("a")))
            .add(Rule.bridge(A, B, recorder.join("b")))
            .add(Rule.bridge(B, C, broken))
            .build()
        )
        with graph.open(A) as root:
            with pytest.raises(ResolutionFailure):
                root.open(C)
            assert recorder.released == ["b(a)"]
            root.close()
        assert recorder.released == ["b(a)", "a"]

    def test_release_errors_after_failure_become_notes(self) -> None:
        def fail(_: str) -> None:
            msg = "stuck"
            raise OSError(msg)

        def broken(_: str) -> str:
            msg = "no"
            raise RuntimeError(msg)

        graph = (
            RouteGraph.builder()
            .add(Rule.start(A, lambda: Value.of("a", fail)))
            .add(Rule.bridge(A, B, broken))
            .build()
        )
        with pytest.raises(ResolutionFailure) as exc_info:
            graph.open(B)
        notes = exc_info.value.__notes__
        assert notes[0].startswith("Releasing partial results failed")
        assert "stuck" in notes[1]

    def test_type_mismatch(self) -> None:
        number: TypeKey[int] = key_of(int, "number")
        graph = RouteGraph.builder().add(Rule.start(number, lambda: "not a number")).build()
        with pytest.raises(TypeMismatchError, match="number:int"):
            graph.open(number)

    def test_type_mismatch_value_is_released(self) -> None:
        released: list[object] = []
        number: TypeKey[int] = key_of(int, "number")
        graph = RouteGraph.builder().add(Rule.start(number, lambda: Value.of("1", released.append))).build()
        with pytest.raises(TypeMismatchError):
            graph.open(number)
        assert released == ["1"]

    def test_current_before_resolution(self, diamond: RouteGraph) -> None:
        scope = Resolution(diamond, A)
        with pytest.raises(RuntimeError, match="never resolved"):
            scope.current()

    def test_repr(self, diamond: RouteGraph) -> None:
        with diamond.open(A) as scope:
            assert repr(scope) == "<Resolution of a:str (open, 1 owned)>"
        assert repr(scope) == "<Resolution of a:str (closed, 0 owned)>"
