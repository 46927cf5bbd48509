import pytest

from models import RegionOutcome, RegionSpec, ShapeMask
from solver import evaluator
from solver.backtrack import PackingSolver
from solver.evaluator import (
    count_solvable,
    evaluate_region,
    evaluate_region_outcome,
    evaluate_regions,
    expand_instances,
    order_instances,
)

DOT = ShapeMask.from_rows(["#"])
SQUARE = ShapeMask.from_rows(["##", "##"])
ELL = ShapeMask.from_rows(["#.", "##"])
BAR = ShapeMask.from_rows(["###"])


@pytest.fixture(autouse=True)
def _no_cp_sat(monkeypatch):
    from config import CFG

    monkeypatch.setattr(CFG, "CP_SAT_RESCUE", False)
    monkeypatch.setattr(CFG, "NODE_LIMIT", 1_000_000)
    monkeypatch.setattr(CFG, "REGION_TIME_LIMIT", 0)


def test_scenario_a_missing_shape_is_unsolvable():
    catalog = {0: DOT}
    region = RegionSpec.from_counts(1, 1, [0, 1])
    assert evaluate_region(region, catalog) is False
    res = evaluate_region_outcome(region, catalog)
    assert res.outcome is RegionOutcome.INFEASIBLE
    assert res.reason == "missing shape 1"


def test_scenario_b_four_cells_fill_two_by_two():
    assert evaluate_region(RegionSpec.from_counts(2, 2, [4]), {0: DOT}) is True


def test_scenario_c_area_over_capacity():
    res = evaluate_region_outcome(RegionSpec.from_counts(2, 2, [5]), {0: DOT})
    assert res.outcome is RegionOutcome.INFEASIBLE
    assert res.reason == "area exceeds capacity"


def test_scenario_d_count_solvable_sums_solved_regions():
    catalog = {0: DOT}
    regions = [RegionSpec.from_counts(2, 2, [4]), RegionSpec.from_counts(2, 2, [5])]
    assert count_solvable(regions, catalog) == 1


def test_area_check_happens_before_any_search(monkeypatch):
    def _boom(*args, **kwargs):
        raise AssertionError("search should not run")

    monkeypatch.setattr(PackingSolver, "solve", _boom)
    region = RegionSpec(3, 3, ((0, 3),))
    assert evaluate_region(region, {0: SQUARE}) is False


def test_all_zero_counts_are_trivially_solvable_even_with_unknown_ids():
    region = RegionSpec(1, 1, ((0, 0), (9, 0)))
    res = evaluate_region_outcome(region, {0: DOT})
    assert res.outcome is RegionOutcome.SOLVED
    assert res.reason == "nothing to place"


def test_empty_requirements_are_solvable():
    assert evaluate_region(RegionSpec(2, 2), {}) is True


@pytest.mark.parametrize("w,h", [(0, 2), (2, 0), (-3, 4)])
def test_non_positive_dimensions_are_unsolvable(w, h):
    res = evaluate_region_outcome(RegionSpec(w, h, ((0, 1),)), {0: DOT})
    assert res.outcome is RegionOutcome.INFEASIBLE
    assert res.reason == "bad dimensions"


def test_non_positive_dimensions_fail_even_with_nothing_to_place():
    assert evaluate_region(RegionSpec(0, 0), {}) is False


def test_fragmented_region_is_infeasible_after_search():
    res = evaluate_region_outcome(RegionSpec(3, 3, ((0, 2),)), {0: SQUARE})
    assert res.outcome is RegionOutcome.INFEASIBLE
    assert res.reason == "search exhausted"
    assert res.nodes > 0


def test_repeated_shape_ids_are_merged():
    catalog = {0: ELL, 1: DOT}
    instances, missing = expand_instances(RegionSpec(4, 2, ((0, 1), (1, 2), (0, 1))), catalog)
    assert missing is None
    assert [i.shape_id for i in instances] == [0, 0, 1, 1]
    assert instances[0].variants is instances[1].variants


def test_expand_reports_first_missing_id():
    instances, missing = expand_instances(RegionSpec(4, 4, ((0, 1), (5, 2), (6, 1))), {0: DOT})
    assert instances is None
    assert missing == 5


def test_order_instances_puts_large_shapes_first_and_is_stable():
    catalog = {0: DOT, 1: BAR, 2: ELL}
    instances, _ = expand_instances(RegionSpec(5, 5, ((0, 1), (1, 1), (2, 1))), catalog)
    ordered = order_instances(instances)
    assert [i.shape_id for i in ordered] == [1, 2, 0]


def test_evaluation_is_idempotent():
    catalog = {0: ELL, 1: SQUARE}
    region = RegionSpec(4, 3, ((0, 2), (1, 1)))
    first = evaluate_region(region, catalog)
    second = evaluate_region(region, catalog)
    assert first is True
    assert first == second


def test_budget_exhaustion_is_unknown_without_rescue():
    res = evaluate_region_outcome(
        RegionSpec(3, 3, ((0, 2),)),
        {0: SQUARE},
        solver=PackingSolver(node_limit=1, time_limit=0),
        cp_sat_rescue=False,
    )
    assert res.outcome is RegionOutcome.UNKNOWN
    assert res.reason == "node limit"
    assert res.solved is False


def test_rescue_is_used_when_budget_runs_out(monkeypatch):
    calls = []

    def fake_rescue(region, instances):
        calls.append((region.width, region.height, len(instances)))
        return RegionOutcome.SOLVED, "cp-sat"

    monkeypatch.setattr(evaluator, "_rescue", fake_rescue)
    res = evaluate_region_outcome(
        RegionSpec(3, 2, ((0, 2),)),
        {0: ELL},
        solver=PackingSolver(node_limit=1, time_limit=0),
        cp_sat_rescue=True,
    )
    assert res.outcome is RegionOutcome.SOLVED
    assert calls == [(3, 2, 2)]


def test_evaluate_regions_reports_every_result_in_order():
    catalog = {0: DOT, 1: SQUARE}
    regions = [
        RegionSpec(2, 2, ((0, 4),), label="a"),
        RegionSpec(3, 3, ((1, 2),), label="b"),
        RegionSpec(1, 1, ((7, 1),), label="c"),
    ]
    seen = []
    results = evaluate_regions(regions, catalog, on_result=seen.append)
    assert [r.index for r in results] == [0, 1, 2]
    assert [r.label for r in results] == ["a", "b", "c"]
    assert [r.solved for r in results] == [True, False, False]
    assert len(seen) == 3


def test_count_solvable_with_worker_processes():
    catalog = {0: DOT, 1: ELL}
    regions = [
        RegionSpec.from_counts(2, 2, [4]),
        RegionSpec.from_counts(3, 2, [0, 2]),
        RegionSpec.from_counts(2, 2, [5]),
        RegionSpec.from_counts(1, 1, [0, 0, 1]),
    ]
    assert count_solvable(regions, catalog, workers=2) == 2


def test_worker_processes_use_parent_budget(monkeypatch):
    from config import CFG

    monkeypatch.setattr(CFG, "NODE_LIMIT", 1)
    regions = [RegionSpec(3, 3, ((0, 2),), "a"), RegionSpec(3, 3, ((0, 2),), "b")]

    results = evaluate_regions(regions, {0: SQUARE}, workers=2)

    assert [(r.outcome, r.reason) for r in results] == [
        (RegionOutcome.UNKNOWN, "node limit"),
        (RegionOutcome.UNKNOWN, "node limit"),
    ]


def test_worker_settings_snapshot_config(monkeypatch):
    from config import CFG

    monkeypatch.setattr(CFG, "NODE_LIMIT", 7)
    monkeypatch.setattr(CFG, "REGION_TIME_LIMIT", 2.5)
    monkeypatch.setattr(CFG, "CP_SAT_SECONDS", 3.0)
    monkeypatch.setattr(CFG, "WORKERS", 4)
    settings = evaluator._worker_settings()
    assert settings["NODE_LIMIT"] == 7
    assert settings["REGION_TIME_LIMIT"] == 2.5
    assert settings["CP_SAT_RESCUE"] is False
    assert settings["CP_SAT_SECONDS"] == 3.0
    assert settings["WORKERS"] == 1

    monkeypatch.setattr(CFG, "NODE_LIMIT", 99)
    evaluator._init_worker(settings)
    assert CFG.NODE_LIMIT == 7
    assert CFG.WORKERS == 1


def test_solved_grid_is_only_rendered_for_debug_logging(monkeypatch, caplog):
    import logging

    from solver.grid import OccupancyGrid

    calls = []
    original = OccupancyGrid.render

    def counting_render(self):
        calls.append(1)
        return original(self)

    monkeypatch.setattr(OccupancyGrid, "render", counting_render)
    region = RegionSpec(2, 2, ((0, 4),))

    caplog.set_level(logging.INFO, logger="solver.evaluator")
    assert evaluate_region(region, {0: DOT})
    assert calls == []

    caplog.set_level(logging.DEBUG, logger="solver.evaluator")
    assert evaluate_region(region, {0: DOT})
    assert calls == [1]
    assert "AB\nCD" in caplog.text
