"""Tests for the trace configuration record."""

import dataclasses

import pytest

from logit_qre.config import TraceConfig
from logit_qre.errors import ConfigError


class TestTraceConfig:

    def test_defaults(self):
        config = TraceConfig()
        assert config.num_decimals == 6
        assert config.step_start == 0.03
        assert config.max_decel == 1.1
        assert config.max_lambda == 1_000_000.0
        assert config.full_graph
        assert not config.use_strategic
        assert config.mle_file is None
        assert config.corrector_tol == 1e-8
        assert config.max_dist == 0.4
        assert config.max_contraction == 0.6
        assert config.min_probability == 1e-10
        assert config.probability_floor == 1e-200

    def test_frozen(self):
        with pytest.raises(dataclasses.FrozenInstanceError):
            TraceConfig().step_start = 0.1

    @pytest.mark.parametrize("changes", [
        {"num_decimals": -1},
        {"step_start": 0.0},
        {"max_decel": 1.0},
        {"max_lambda": -5.0},
        {"min_step": 1.0, "max_step": 0.5},
        {"corrector_tol": 0.0},
        {"max_contraction": 1.5},
        {"max_corrector_iter": 0},
        {"min_probability": 2.0},
        {"probability_floor": 0.0},
    ])
    def test_rejects_invalid_values(self, changes):
        with pytest.raises(ConfigError):
            TraceConfig(**changes)

    def test_config_error_is_value_error(self):
        with pytest.raises(ValueError):
            TraceConfig(step_start=-1.0)

    def test_pure_limit_check_can_be_disabled(self):
        assert TraceConfig(min_probability=None).min_probability is None
