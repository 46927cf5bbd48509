import pytest

from models import RegionSpec
from puzzle_parser import PuzzleFormatError, parse_puzzle
from solver.evaluator import count_solvable

SAMPLE = """\
0:
###
##.
##.

1:
#.
##

3:
#

4x4: 0 2
6x2: 0 4 0 0
3x3: 1 0 0 9
2x2:
this line is ignored
"""


def test_parses_shapes_with_non_contiguous_ids():
    puzzle = parse_puzzle(SAMPLE)
    assert sorted(puzzle.catalog) == [0, 1, 3]
    assert puzzle.catalog[0].to_lines() == ("###", "##.", "##.")
    assert puzzle.catalog[0].area == 7
    assert puzzle.catalog[1].area == 3
    assert puzzle.catalog[3].area == 1


def test_region_counts_are_positional():
    puzzle = parse_puzzle(SAMPLE)
    assert puzzle.regions[0] == RegionSpec(4, 4, ((0, 0), (1, 2)), "4x4")
    assert puzzle.regions[1].requirements == ((0, 0), (1, 4), (2, 0), (3, 0))
    assert puzzle.regions[3].requirements == ()
    assert [r.describe() for r in puzzle.regions] == ["4x4", "6x2", "3x3", "2x2"]


def test_sample_end_to_end():
    puzzle = parse_puzzle(SAMPLE)
    # 4x4 with two L's: yes. 6x2 with four L's: yes. 3x3 with 7+9 cells: no. empty 2x2: yes.
    assert count_solvable(puzzle.regions, puzzle.catalog) == 3


def test_header_without_rows_defines_nothing():
    puzzle = parse_puzzle("5:\n\n1x1: 0 0 0 0 0 1\n")
    assert puzzle.catalog == {}
    assert len(puzzle.regions) == 1
    assert count_solvable(puzzle.regions, puzzle.catalog) == 0


def test_shape_block_ends_at_first_non_row_line():
    puzzle = parse_puzzle("0:\n##\n2x1: 1\n")
    assert puzzle.catalog[0].to_lines() == ("##",)
    assert puzzle.regions[0].requirements == ((0, 1),)


def test_ragged_shape_rows_are_rejected_with_line_number():
    with pytest.raises(PuzzleFormatError) as info:
        parse_puzzle("0:\n###\n#.\n")
    assert info.value.line_no == 2
    assert "shape 0" in str(info.value)


def test_bad_count_is_rejected():
    with pytest.raises(PuzzleFormatError) as info:
        parse_puzzle("0:\n#\n\n2x2: 1 two\n")
    assert info.value.line_no == 4


def test_negative_dimensions_parse_but_never_solve():
    puzzle = parse_puzzle("0:\n#\n\n-2x3: 0\n")
    assert puzzle.regions[0].width == -2
    assert count_solvable(puzzle.regions, puzzle.catalog) == 0


def test_empty_text():
    puzzle = parse_puzzle("")
    assert puzzle.catalog == {}
    assert puzzle.regions == []
