"""Tests for try_call and adapt_failures."""

import pytest

from routegraph import CyclicRouteError, ResolutionFailure, adapt_failures, key_of, try_call


def divide(a: int, b: int) -> float:
    return a / b


class TestTryCall:
    """Tests for try_call."""

    def test_returns_result(self) -> None:
        assert try_call(divide, 6, b=3) == 2

    def test_wraps_failure(self) -> None:
        with pytest.raises(ResolutionFailure, match="divide failed: ZeroDivisionError") as exc_info:
            try_call(divide, 1, 0)
        assert isinstance(exc_info.value.__cause__, ZeroDivisionError)
        assert exc_info.value.key is None

    def test_engine_errors_pass_through(self) -> None:
        def cyclic() -> None:
            raise CyclicRouteError([key_of(int), key_of(int)])

        with pytest.raises(CyclicRouteError):
            try_call(cyclic)


class TestAdaptFailures:
    """Tests for the adapt_failures decorator."""

    def test_adapts_listed_exceptions(self) -> None:
        @adapt_failures(OSError)
        def read() -> str:
            msg = "disk gone"
            raise FileNotFoundError(msg)

        with pytest.raises(ResolutionFailure, match="read failed: FileNotFoundError: disk gone") as exc_info:
            read()
        assert isinstance(exc_info.value.__cause__, FileNotFoundError)

    def test_other_exceptions_propagate(self) -> None:
        @adapt_failures(OSError)
        def parse() -> int:
            return int("x")

        with pytest.raises(ValueError, match="invalid literal"):
            parse()

    def test_defaults_to_exception(self) -> None:
        @adapt_failures()
        def parse() -> int:
            return int("x")

        with pytest.raises(ResolutionFailure):
            parse()

    def test_keeps_function_metadata(self) -> None:
        @adapt_failures(OSError)
        def documented() -> None:
            """Docstring."""

        assert documented.__name__ == "documented"
        assert documented.__doc__ == "Docstring."
