# ==============================================================================
# --- VC Portfolio Model: Parameter Loader & Validator (v3.0) ---
# ==============================================================================

import json
import logging
from typing import Any, Dict, List, Optional

import jsonschema
import numpy as np
import yaml

from errors import InvalidInputError
from parameters import (
    ExitBucket, FeeStructure, GridAnalysisParameters, PortfolioParameters, StageParameters
)

# Bucket probabilities are percentages and must add up to this
PROBABILITY_TOTAL = 100.0
PROBABILITY_TOLERANCE = 1e-6


# --------------------------------------------------------------------------
# --- Logical Validation ---
# --------------------------------------------------------------------------

def validate_stage_parameters(stage: StageParameters, stage_name: str) -> None:
    """Raises InvalidInputError if a stage cannot be simulated."""
    if stage.avg_check_size <= 0:
        raise InvalidInputError(f"Stage '{stage_name}': avg_check_size must be positive. Got: {stage.avg_check_size}")
    if not 0 <= stage.follow_on_reserve_ratio <= 100:
        raise InvalidInputError(f"Stage '{stage_name}': follow_on_reserve_ratio must be within 0-100. Got: {stage.follow_on_reserve_ratio}")
    if not stage.exit_buckets:
        raise InvalidInputError(f"Stage '{stage_name}' has no exit buckets.")

    for bucket in stage.exit_buckets:
        if bucket.probability < 0:
            raise InvalidInputError(f"Stage '{stage_name}': bucket '{bucket.label}' has a negative probability.")
        if bucket.min_multiple < 0 or bucket.max_multiple < 0:
            raise InvalidInputError(f"Stage '{stage_name}': bucket '{bucket.label}' has a negative multiple.")
        if bucket.min_multiple > bucket.max_multiple:
            raise InvalidInputError(
                f"Stage '{stage_name}': bucket '{bucket.label}' min_multiple {bucket.min_multiple} exceeds max_multiple {bucket.max_multiple}."
            )

    total = sum(bucket.probability for bucket in stage.exit_buckets)
    if not np.isclose(total, PROBABILITY_TOTAL, rtol=0, atol=PROBABILITY_TOLERANCE):
        raise InvalidInputError(f"Stage '{stage_name}': exit bucket probabilities must sum to 100. Got: {total}")


def _validate_timing(investment_period: int, fund_life: int, exit_window_min: float, exit_window_max: float) -> None:
    if investment_period < 1:
        raise InvalidInputError(f"investment_period must be at least 1 year. Got: {investment_period}")
    if investment_period > fund_life:
        raise InvalidInputError(f"investment_period ({investment_period}) cannot exceed fund_life ({fund_life}).")
    if exit_window_min >= exit_window_max:
        raise InvalidInputError(f"exit_window_min ({exit_window_min}) must be earlier than exit_window_max ({exit_window_max}).")


def validate_portfolio_parameters(params: PortfolioParameters) -> None:
    """
    Checks the preconditions the engine relies on.

    Raises:
        InvalidInputError: on the first violated precondition
    """
    if params.fund_size <= 0:
        raise InvalidInputError(f"fund_size must be positive. Got: {params.fund_size}")
    if params.num_companies < 1:
        raise InvalidInputError(f"num_companies must be at least 1. Got: {params.num_companies}")
    if params.num_simulations < 1:
        raise InvalidInputError(f"num_simulations must be at least 1. Got: {params.num_simulations}")
    if not 0 <= params.seed_percentage <= 100:
        raise InvalidInputError(f"seed_percentage must be within 0-100. Got: {params.seed_percentage}")

    _validate_timing(params.investment_period, params.fund_life, params.exit_window_min, params.exit_window_max)
    validate_stage_parameters(params.seed_stage, 'seed')
    validate_stage_parameters(params.series_a_stage, 'seriesA')


def validate_grid_parameters(params: GridAnalysisParameters) -> None:
    """Grid-level counterpart of validate_portfolio_parameters."""
    if params.fund_size <= 0:
        raise InvalidInputError(f"fund_size must be positive. Got: {params.fund_size}")
    if params.investment_count_min < 1:
        raise InvalidInputError(f"investment_count_min must be at least 1. Got: {params.investment_count_min}")
    if params.investment_count_min > params.investment_count_max:
        raise InvalidInputError(
            f"investment_count_min ({params.investment_count_min}) exceeds investment_count_max ({params.investment_count_max})."
        )
    if not params.seed_percentages:
        raise InvalidInputError("seed_percentages must list at least one allocation.")
    for pct in params.seed_percentages:
        if not 0 <= pct <= 100:
            raise InvalidInputError(f"seed_percentages must be within 0-100. Got: {pct}")
    if params.num_simulations_per_scenario < 1:
        raise InvalidInputError(f"num_simulations_per_scenario must be at least 1. Got: {params.num_simulations_per_scenario}")

    _validate_timing(params.investment_period, params.fund_life, params.exit_window_min, params.exit_window_max)
    validate_stage_parameters(params.seed_stage, 'seed')
    validate_stage_parameters(params.series_a_stage, 'seriesA')


# --------------------------------------------------------------------------
# --- Parsing ---
# --------------------------------------------------------------------------

def _parse_stage(stage_data: Dict[str, Any]) -> StageParameters:
    return StageParameters(
        avg_check_size=stage_data['avg_check_size'],
        follow_on_reserve_ratio=stage_data.get('follow_on_reserve_ratio', 0.0),
        target_ownership=stage_data.get('target_ownership', 0.0),
        exit_buckets=[ExitBucket(**bucket) for bucket in stage_data['exit_buckets']],
    )


def _parse_fee_structure(config: Dict[str, Any]) -> Optional[FeeStructure]:
    fee_data = config.get('fee_structure')
    if fee_data is None:
        return None
    return FeeStructure(**fee_data)


def parameters_from_dict(config: Dict[str, Any]) -> PortfolioParameters:
    """Builds and validates PortfolioParameters from an already-loaded config."""
    stages = config['stages']
    params = PortfolioParameters(
        fund_size=config['fund_size'],
        num_companies=config['num_companies'],
        seed_percentage=config['seed_percentage'],
        seed_stage=_parse_stage(stages['seed']),
        series_a_stage=_parse_stage(stages['series_a']),
        investment_period=config['investment_period'],
        fund_life=config['fund_life'],
        exit_window_min=config['exit_window_min'],
        exit_window_max=config['exit_window_max'],
        num_simulations=config['num_simulations'],
        fee_structure=_parse_fee_structure(config),
    )
    validate_portfolio_parameters(params)
    return params


def grid_parameters_from_dict(config: Dict[str, Any]) -> GridAnalysisParameters:
    """Builds and validates GridAnalysisParameters from the config's `grid` section."""
    if 'grid' not in config:
        raise InvalidInputError("Configuration has no 'grid' section.")

    grid = config['grid']
    stages = config['stages']
    seed_percentages: List[float] = list(grid['seed_percentages'])
    params = GridAnalysisParameters(
        fund_size=config['fund_size'],
        investment_count_min=grid['investment_count_min'],
        investment_count_max=grid['investment_count_max'],
        seed_percentages=seed_percentages,
        seed_stage=_parse_stage(stages['seed']),
        series_a_stage=_parse_stage(stages['series_a']),
        investment_period=config['investment_period'],
        fund_life=config['fund_life'],
        exit_window_min=config['exit_window_min'],
        exit_window_max=config['exit_window_max'],
        num_simulations_per_scenario=grid.get('num_simulations_per_scenario', config['num_simulations']),
        fee_structure=_parse_fee_structure(config),
    )
    validate_grid_parameters(params)
    return params


def _load_config(config_path: str, schema_path: str) -> Dict[str, Any]:
    with open(config_path, 'r', encoding='utf-8') as f:
        config = yaml.safe_load(f)

    # --- Schema Validation ---
    try:
        with open(schema_path, 'r', encoding='utf-8') as f:
            schema = json.load(f)
    except FileNotFoundError:
        logging.warning(f"Schema file not found at {schema_path}. Skipping schema validation.")
        return config

    try:
        jsonschema.validate(instance=config, schema=schema)
    except jsonschema.ValidationError as e:
        raise InvalidInputError(f"Configuration file {config_path} failed validation against {schema_path}: {e.message}") from e

    logging.info(f"Configuration file {config_path} validated against schema.")
    return config


def load_parameters(config_path: str, schema_path: str = 'config.schema.json') -> PortfolioParameters:
    """Loads, validates (schema and logic), and processes portfolio parameters from a YAML file."""
    params = parameters_from_dict(_load_config(config_path, schema_path))
    logging.info("PortfolioParameters object created successfully.")
    return params


def load_grid_parameters(config_path: str, schema_path: str = 'config.schema.json') -> GridAnalysisParameters:
    """Loads grid-search parameters from the same YAML layout as load_parameters."""
    params = grid_parameters_from_dict(_load_config(config_path, schema_path))
    logging.info("GridAnalysisParameters object created successfully.")
    return params
