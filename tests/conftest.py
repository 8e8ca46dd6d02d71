import pytest

from skill_evals.pipeline import parse_config

from helpers import SAMPLE_CONFIG_YAML


@pytest.fixture
def sample_config():
    return parse_config(SAMPLE_CONFIG_YAML)
