"""Tests for the transform adapter invocation contract."""

import pytest

from streamfilter.chain.adapter import (
    END,
    AdapterStatus,
    Direction,
    Failure,
    Phase,
    Success,
    TransformAdapter,
    coerce_chunk,
    inspect_transform,
)
from streamfilter.exceptions import InvalidTransformError


class TestInspectTransform:
    """Test callable validation and end-of-stream detection."""

    def test_optional_chunk_receives_end(self):
        assert inspect_transform(lambda chunk=None: chunk) is True

    def test_required_chunk_does_not_receive_end(self):
        assert inspect_transform(lambda chunk: chunk) is False

    def test_varargs_receives_end(self):
        assert inspect_transform(lambda *args: b"") is True

    def test_callable_object(self):
        class Upper:
            def __call__(self, chunk):
                return chunk.upper()

        assert inspect_transform(Upper()) is False

    def test_not_callable(self):
        with pytest.raises(InvalidTransformError, match="not callable"):
            inspect_transform("a-b-c")

    def test_no_arguments(self):
        with pytest.raises(InvalidTransformError, match="does not accept a chunk"):
            inspect_transform(lambda: b"")

    def test_keyword_only_chunk(self):
        def transform(*, chunk):
            return chunk

        with pytest.raises(InvalidTransformError):
            inspect_transform(transform)


class TestCoerceChunk:
    """Test normalization of transform return values."""

    def test_none_is_empty(self):
        assert coerce_chunk(None) == b""

    def test_bytes_like(self):
        assert coerce_chunk(bytearray(b"ab")) == b"ab"
        assert coerce_chunk(memoryview(b"cd")) == b"cd"

    def test_str_rejected(self):
        with pytest.raises(TypeError, match="expected bytes"):
            coerce_chunk("text")


class TestTransformAdapter:
    """Test adapter invocation and status transitions."""

    def test_invoke_chunk(self):
        adapter = TransformAdapter(lambda chunk: chunk * 2, Direction.WRITE)

        outcome = adapter.invoke(b"ab")

        assert outcome == Success(b"abab")
        assert adapter.status is AdapterStatus.ACTIVE

    def test_invoke_end(self):
        calls = []

        def transform(chunk=None):
            calls.append(chunk)
            return b"tail" if chunk is None else chunk

        adapter = TransformAdapter(transform, Direction.READ)

        assert adapter.invoke(END) == Success(b"tail")
        assert adapter.status is AdapterStatus.ENDED
        assert adapter.end_delivered
        assert calls == [None]

    def test_ended_adapter_is_not_called_again(self):
        calls = []

        def transform(chunk=None):
            calls.append(chunk)
            return chunk

        adapter = TransformAdapter(transform, Direction.WRITE)
        adapter.invoke(END)

        assert adapter.invoke(b"late") == Success(b"")
        assert adapter.invoke(END) == Success(b"")
        assert calls == [None]

    def test_end_without_end_support_skips_call(self):
        calls = []

        def transform(chunk):
            calls.append(chunk)
            return chunk

        adapter = TransformAdapter(transform, Direction.WRITE)

        assert adapter.invoke(END) == Success(b"")
        assert adapter.status is AdapterStatus.ENDED
        assert calls == []

    def test_chunk_failure(self):
        error = ValueError("bad chunk")

        def transform(chunk):
            raise error

        adapter = TransformAdapter(transform, Direction.WRITE)
        outcome = adapter.invoke(b"x")

        assert isinstance(outcome, Failure)
        assert outcome.error is error
        assert outcome.phase is Phase.CHUNK
        assert adapter.status is AdapterStatus.FAILED
        assert not adapter.end_delivered

    def test_wrong_return_type_is_failure(self):
        adapter = TransformAdapter(lambda chunk: chunk.decode(), Direction.WRITE)

        outcome = adapter.invoke(b"x")

        assert isinstance(outcome, Failure)
        assert isinstance(outcome.error, TypeError)
        assert adapter.status is AdapterStatus.FAILED

    def test_end_failure(self):
        def transform(chunk=None):
            if chunk is None:
                raise RuntimeError("flush failed")
            return chunk

        adapter = TransformAdapter(transform, Direction.READ)
        outcome = adapter.invoke(END)

        assert isinstance(outcome, Failure)
        assert outcome.phase is Phase.END
        assert adapter.status is AdapterStatus.FAILED
        assert adapter.end_delivered

    def test_force_end_after_failure_runs_once(self):
        calls = []

        def transform(chunk=None):
            calls.append(chunk)
            if chunk is not None:
                raise ValueError("boom")
            return b"flushed"

        adapter = TransformAdapter(transform, Direction.WRITE)
        adapter.invoke(b"x")

        assert adapter.force_end() == Success(b"flushed")
        assert adapter.force_end() is None
        assert adapter.status is AdapterStatus.FAILED
        assert calls == [b"x", None]

    def test_force_end_failure(self):
        def transform(chunk=None):
            raise ValueError("always")

        adapter = TransformAdapter(transform, Direction.WRITE)
        adapter.invoke(b"x")
        outcome = adapter.force_end()

        assert isinstance(outcome, Failure)
        assert outcome.phase is Phase.END
        assert adapter.status is AdapterStatus.FAILED

    def test_buffered_output_drained_once_on_end(self):
        class Lines:
            """Emit only complete lines, holding the tail until end-of-stream."""

            def __init__(self) -> None:
                self.pending = b""

            def __call__(self, chunk=None):
                if chunk is None:
                    tail, self.pending = self.pending, b""
                    return tail
                data = self.pending + chunk
                cut = data.rfind(b"\n") + 1
                self.pending = data[cut:]
                return data[:cut]

        transform = Lines()
        adapter = TransformAdapter(transform, Direction.WRITE)

        assert adapter.invoke(b"one\ntw") == Success(b"one\n")
        assert adapter.invoke(b"o") == Success(b"")
        assert adapter.invoke(END) == Success(b"two")
        assert adapter.invoke(END) == Success(b"")
        assert adapter.force_end() is None
        assert transform.pending == b""

    def test_requires_single_direction(self):
        with pytest.raises(ValueError, match="single direction"):
            TransformAdapter(lambda chunk: chunk, Direction.BOTH)

    def test_name_defaults_to_qualname(self):
        def upper(chunk):
            return chunk.upper()

        adapter = TransformAdapter(upper, Direction.WRITE)

        assert adapter.name.endswith("upper")


class TestDirection:
    """Test direction flags."""

    def test_split_both(self):
        assert Direction.BOTH.split() == [Direction.WRITE, Direction.READ]

    def test_split_single(self):
        assert Direction.READ.split() == [Direction.READ]

    def test_end_marker_is_not_a_chunk(self):
        assert END is not None
        assert END != b""
        assert repr(END) == "END"
