import asyncio

import pytest

from qrstudio.errors import EncodingError
from qrstudio.generator import ModuleMatrix, encode, encode_matrix


def test_encode_matrix_is_square_without_border():
    m = encode_matrix("https://example.com", "M")
    assert m.size == 25  # version 2
    assert len(m.rows()) == m.size
    assert all(len(row) == m.size for row in m.rows())
    # finder pattern corner is dark, its separator is light
    assert m.get(0, 0)
    assert not m.get(7, 7)


def test_fixed_version_gives_29_modules():
    m = encode_matrix("hello", "L", version=3)
    assert m.size == 29


def test_empty_text_is_encoding_error():
    with pytest.raises(EncodingError):
        encode_matrix("")


def test_overflow_is_encoding_error():
    with pytest.raises(EncodingError):
        encode_matrix("x" * 400, "H", version=1)


def test_async_encode_matches_sync():
    assert asyncio.run(encode("qrstudio", "Q")) == encode_matrix("qrstudio", "Q")


def test_matrix_rejects_empty_and_ragged():
    with pytest.raises(EncodingError):
        ModuleMatrix([])
    with pytest.raises(EncodingError):
        ModuleMatrix([[True, False], [True]])
    with pytest.raises(EncodingError):
        ModuleMatrix.from_rows(None)


def test_active_cells_row_major():
    m = ModuleMatrix([[True, False], [False, True]])
    assert list(m.active_cells()) == [(0, 0), (1, 1)]
    assert ModuleMatrix.from_rows(m) is m


def test_in_finder_marks_the_three_corners():
    m = encode_matrix("https://example.com", "M")
    far = m.size - 7
    assert m.in_finder(0, 0) and m.in_finder(6, 6)
    assert m.in_finder(0, far) and m.in_finder(far, 0)
    assert not m.in_finder(7, 7)
    assert not m.in_finder(far, far)
    assert not m.in_finder(0, 7)
