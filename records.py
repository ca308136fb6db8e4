# records.py
# Plain-dict snapshots of runs and grid analyses, shaped for a JSON store
import time
import uuid
from dataclasses import asdict
from typing import Any, Dict, List, Optional, Sequence

from parameters import (
    GridAnalysisResult, GridScenario, PortfolioParameters, SimulationResult, SummaryStatistics
)

# Stores keep at most this many saved runs, newest first
MAX_SAVED_RUNS = 50


def _new_id() -> str:
    return uuid.uuid4().hex


def _now_ms() -> int:
    return int(time.time() * 1000)


def build_run_record(
    parameters: PortfolioParameters,
    summary: SummaryStatistics,
    results: Sequence[SimulationResult],
    run_id: Optional[str] = None,
    timestamp: Optional[int] = None,
) -> Dict[str, Any]:
    """Snapshot of one Monte Carlo run: {id, timestamp, parameters, summary, results}."""
    return {
        'id': run_id if run_id is not None else _new_id(),
        'timestamp': timestamp if timestamp is not None else _now_ms(),
        'parameters': asdict(parameters),
        'summary': asdict(summary),
        'results': [asdict(r) for r in results],
    }


def _scenario_dict(scenario: GridScenario) -> Dict[str, Any]:
    # Per-realization results stay out of grid records
    data = asdict(scenario)
    data.pop('results', None)
    return data


def build_grid_analysis_record(
    analysis: GridAnalysisResult,
    run_id: Optional[str] = None,
    timestamp: Optional[int] = None,
) -> Dict[str, Any]:
    """Snapshot of a grid analysis, keyed the way the saved-analysis store expects."""
    def _strategy_dict(strategy):
        return {
            'scenario': _scenario_dict(strategy.scenario),
            'criterion': strategy.criterion,
            'reasoning': strategy.reasoning,
        }

    return {
        'id': run_id if run_id is not None else _new_id(),
        'timestamp': timestamp if timestamp is not None else _now_ms(),
        'parameters': asdict(analysis.parameters),
        'scenarios': [_scenario_dict(s) for s in analysis.scenarios],
        'bestStrategies': [_strategy_dict(s) for s in analysis.best_strategies],
        'worstStrategies': [_strategy_dict(s) for s in analysis.worst_strategies],
        'commentary': analysis.commentary,
    }


def sort_records(records: Sequence[Dict[str, Any]], limit: Optional[int] = None) -> List[Dict[str, Any]]:
    """Newest first, optionally keeping only the first `limit` records."""
    ordered = sorted(records, key=lambda r: r['timestamp'], reverse=True)
    return ordered if limit is None else ordered[:limit]
