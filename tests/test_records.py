# tests/test_records.py
import json

import pytest

from conftest import make_result, make_scenario, make_summary
from grid_analysis import identify_best_strategies, identify_worst_strategies
from parameters import GridAnalysisResult
from records import MAX_SAVED_RUNS, build_grid_analysis_record, build_run_record, sort_records


@pytest.fixture
def grid_analysis_result(small_grid_params):
    scenarios = [make_scenario(5, 0, median_moic=1.8), make_scenario(6, 100, median_moic=2.6)]
    scenarios[0].results.append(make_result(1.8))
    return GridAnalysisResult(
        parameters=small_grid_params,
        scenarios=scenarios,
        best_strategies=identify_best_strategies(scenarios),
        worst_strategies=identify_worst_strategies(scenarios),
        commentary="**Portfolio Construction Analysis: $100M Fund**",
    )


def test_run_record_shape(base_params):
    results = [make_result(1.5), make_result(2.5)]
    record = build_run_record(base_params, make_summary(), results)

    assert set(record) == {'id', 'timestamp', 'parameters', 'summary', 'results'}
    assert len(record['id']) == 32
    int(record['id'], 16)
    assert record['timestamp'] > 0
    assert record['parameters']['num_companies'] == base_params.num_companies
    assert record['parameters']['seed_stage']['exit_buckets'][0]['label'] == "Total Loss"
    assert [r['gross_moic'] for r in record['results']] == [1.5, 2.5]


def test_run_record_ids_unique(base_params):
    first = build_run_record(base_params, make_summary(), [])
    second = build_run_record(base_params, make_summary(), [])
    assert first['id'] != second['id']


def test_run_record_explicit_id_and_timestamp(base_params):
    record = build_run_record(base_params, make_summary(), [], run_id="abc", timestamp=1700000000000)
    assert record['id'] == "abc"
    assert record['timestamp'] == 1700000000000


def test_run_record_is_json_serializable(base_params):
    record = build_run_record(base_params, make_summary(), [make_result(2.0)])
    assert json.loads(json.dumps(record))['summary']['median_moic'] == 2.0


def test_grid_record_shape(grid_analysis_result):
    record = build_grid_analysis_record(grid_analysis_result, timestamp=5)

    assert set(record) == {
        'id', 'timestamp', 'parameters', 'scenarios', 'bestStrategies', 'worstStrategies', 'commentary'
    }
    assert record['timestamp'] == 5
    assert len(record['scenarios']) == 2
    assert record['bestStrategies'][0]['criterion'] == "Highest Median MOIC"
    assert record['bestStrategies'][0]['scenario']['num_companies'] == 6
    assert record['worstStrategies'][0]['scenario']['num_companies'] == 5
    assert record['parameters']['seed_percentages'] == [0, 100]


def test_grid_record_omits_per_run_results(grid_analysis_result):
    record = build_grid_analysis_record(grid_analysis_result)
    assert all('results' not in s for s in record['scenarios'])
    assert all('results' not in s['scenario'] for s in record['worstStrategies'])
    json.dumps(record)


def test_sort_records_newest_first():
    records = [{'id': 'a', 'timestamp': 2}, {'id': 'b', 'timestamp': 9}, {'id': 'c', 'timestamp': 5}]
    assert [r['id'] for r in sort_records(records)] == ['b', 'c', 'a']
    assert [r['id'] for r in sort_records(records, limit=2)] == ['b', 'c']


def test_sort_records_store_limit():
    records = [{'id': str(i), 'timestamp': i} for i in range(60)]
    kept = sort_records(records, limit=MAX_SAVED_RUNS)
    assert len(kept) == 50
    assert kept[0]['id'] == '59'
    assert kept[-1]['id'] == '10'
