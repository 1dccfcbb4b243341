from ctrkit.common import TensorFormat, get_size_from_dims


def test_size_of_two_dims():
    assert get_size_from_dims([4, 5]) == 20


def test_size_of_three_dims():
    assert get_size_from_dims((2, 3, 4)) == 24


def test_size_of_single_element():
    assert get_size_from_dims([1, 1, 1]) == 1


def test_size_is_order_independent():
    assert get_size_from_dims([7, 3, 2]) == get_size_from_dims([2, 7, 3])


def test_tensor_format_lookup_by_value():
    assert TensorFormat("HSW") is TensorFormat.HSW
    assert TensorFormat("WH") is not TensorFormat.HW