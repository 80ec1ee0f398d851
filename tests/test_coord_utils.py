import pytest

from pirates.coord_utils import COORD_RE, coord_to_xy, format_coord


def test_coord_to_xy_letter_is_row():
    assert coord_to_xy("A1") == (0, 0)
    assert coord_to_xy("b3") == (2, 1)
    assert coord_to_xy(" J10 ") == (9, 9)


@pytest.mark.parametrize("x, y", [(0, 0), (4, 7), (9, 9)])
def test_format_coord_inverse(x, y):
    assert coord_to_xy(format_coord(x, y)) == (x, y)


@pytest.mark.parametrize("bad", ["K1", "A0", "A11", "1A", "", "AA1"])
def test_invalid_coords(bad):
    with pytest.raises(ValueError):
        coord_to_xy(bad)


def test_regex_shape():
    assert COORD_RE.match("C10")
    assert not COORD_RE.match("C05")
