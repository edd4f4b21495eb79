import pytest

from cxpnet.ensure import EnsureError, ensure


def test_failed_condition_raises_formatted_message():
    with pytest.raises(EnsureError, match=r"User ID must be a positive number, but got -5\."):
        ensure(-5 > 0, "User ID must be a positive number, but got {}.", -5)


def test_message_with_several_arguments():
    with pytest.raises(EnsureError) as info:
        ensure(False, "len: {} > readable_size: {}", 10, 3)
    assert str(info.value) == "len: 10 > readable_size: 3"


def test_error_is_a_runtime_error():
    with pytest.raises(RuntimeError, match="append size must > 0"):
        ensure(0 > 0, "append size must > 0")


def test_true_condition_does_not_format():
    # A passing check must not touch the format string, even a broken one.
    assert ensure(True, "{} {} {}") is None
    with pytest.raises(IndexError):
        ensure(False, "{} {} {}")