# tests/test_defaults.py
import pytest

from defaults import (
    BUCKET_DESCRIPTIONS, DEFAULT_PARAMETERS, default_grid_parameters, default_parameters,
    get_benchmark_category
)


@pytest.mark.parametrize("moic, category", [
    (5.0, "Top Quartile"),
    (3.5, "Top Quartile"),
    (2.0, "Above Median"),
    (1.5, "Below Median"),
    (0.8, "Bottom Quartile"),
])
def test_benchmark_category(moic, category):
    assert get_benchmark_category(moic) == category


def test_default_parameters_are_private_copies():
    params = default_parameters()
    params.seed_stage.exit_buckets.pop()
    params.num_companies = 3
    assert len(DEFAULT_PARAMETERS.seed_stage.exit_buckets) == 5
    assert DEFAULT_PARAMETERS.num_companies == 25


def test_default_grid_shares_stage_economics():
    grid = default_grid_parameters()
    assert grid.seed_stage == DEFAULT_PARAMETERS.seed_stage
    assert grid.fund_size == DEFAULT_PARAMETERS.fund_size


def test_every_default_bucket_is_described():
    for stage in (DEFAULT_PARAMETERS.seed_stage, DEFAULT_PARAMETERS.series_a_stage):
        for bucket in stage.exit_buckets:
            assert bucket.label in BUCKET_DESCRIPTIONS
