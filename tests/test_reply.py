import pytest

from redscriptor.reply import (
    ArrayReplyReader,
    ReplyValue,
    nullable_int,
    nullable_string,
)


def test_as_int64_truncates_decimal_string():
    assert ReplyValue("3.9").as_int64(0) == 3


def test_as_int64_reads_bytes():
    assert ReplyValue(b"42").as_int64(0) == 42


def test_as_int64_nil_gives_default():
    assert ReplyValue(None).as_int64(7) == 7


def test_as_int64_bool_gives_default():
    assert ReplyValue(True).as_int64(4) == 4


def test_as_int64_rejects_garbage():
    with pytest.raises(ValueError):
        ReplyValue("abc").as_int64(0)


def test_as_int64_rejects_padding():
    with pytest.raises(ValueError):
        ReplyValue(" 12").as_int64(0)


def test_as_int32_wraps_large_integer():
    assert ReplyValue((1 << 32) + 5).as_int32(0) == 5


def test_as_int32_float_value_gives_default():
    assert ReplyValue(2.5).as_int32(11) == 11


def test_as_float64_passes_floats_and_ints():
    assert ReplyValue(1.5).as_float64(0.0) == 1.5
    assert ReplyValue(8).as_float64(0.0) == 8.0
    assert ReplyValue("2.25").as_float64(0.0) == 2.25


def test_as_float64_rejects_garbage():
    with pytest.raises(ValueError):
        ReplyValue("x1").as_float64(0.0)


def test_as_string_variants():
    assert ReplyValue(12).as_string() == "12"
    assert ReplyValue(b"abc").as_string() == "abc"
    assert ReplyValue(None).as_string() == ""
    assert ReplyValue(1.5).as_string() == ""


def test_is_nil():
    assert ReplyValue(None).is_nil()
    assert not ReplyValue("").is_nil()


def test_to_array_reader():
    reader = ReplyValue(["a", "b"]).to_array_reader()
    assert len(reader) == 2
    assert reader.read_string() == "a"
    assert ReplyValue("a").to_array_reader() is None


def test_nullable_helpers():
    assert nullable_int(ReplyValue(None)) is None
    assert nullable_int(ReplyValue("17")) == 17
    assert nullable_string(ReplyValue(None)) is None
    assert nullable_string(ReplyValue(b"name")) == "name"


def test_nullable_int_propagates_parse_error():
    with pytest.raises(ValueError):
        nullable_int(ReplyValue("nope"))


def test_reader_sequential_reads_and_past_end():
    reader = ArrayReplyReader(["key", "10", 2.5])
    assert reader.read_string() == "key"
    assert reader.read_int64(0) == 10
    assert reader.read_float64(0.0) == 2.5
    assert reader.read_string() == ""
    assert reader.read_int64(9) == 9
    assert reader.read_value().is_nil()


def test_has_next_and_skip():
    reader = ArrayReplyReader(["a", "b"])
    assert reader.has_next()
    reader.skip()
    assert reader.has_next()
    reader.skip()
    assert not reader.has_next()
    assert reader.position == 2


def test_read_array_nested():
    reader = ArrayReplyReader([["x", 1], "tail"])
    inner = reader.read_array()
    assert inner.read_string() == "x"
    assert inner.read_int32(0) == 1
    assert reader.read_string() == "tail"


def test_read_array_rejects_scalar():
    reader = ArrayReplyReader(["scalar"])
    with pytest.raises(TypeError):
        reader.read_array()


def test_for_each_visits_all_in_order():
    seen = []
    ArrayReplyReader(["a", "b", "c"]).for_each(lambda i, v: seen.append((i, v.as_string())))
    assert seen == [(0, "a"), (1, "b"), (2, "c")]


def test_for_each_stops_on_exception():
    seen = []

    def action(index, value):
        seen.append(index)
        if index == 1:
            raise RuntimeError("stop")

    with pytest.raises(RuntimeError):
        ArrayReplyReader(["a", "b", "c"]).for_each(action)
    assert seen == [0, 1]


def test_iteration_does_not_move_position():
    reader = ArrayReplyReader(["a", "b"])
    assert [v.as_string() for v in reader] == ["a", "b"]
    assert reader.position == 0