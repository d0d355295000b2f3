# tests/test_config.py
import json
import logging

import pytest
from pydantic import ValidationError

from inmoflow.adapters.config import AppConfig
from inmoflow.adapters.logging_utils import JsonLogFormatter


@pytest.mark.parametrize("raw", ["3%", "3", 3, 0.03])
def test_percent_like_rates(raw):
    assert AppConfig(AGENCY_FEE_PCT=raw).AGENCY_FEE_PCT == pytest.approx(0.03)


def test_negative_rate_rejected():
    with pytest.raises(ValidationError):
        AppConfig(TRANSFER_TAX_PCT=-1)


def test_env_overrides(monkeypatch):
    monkeypatch.setenv("INMOFLOW_MAX_PAGE_SIZE", "250")
    monkeypatch.setenv("INMOFLOW_ENV", "test")
    cfg = AppConfig()
    assert cfg.MAX_PAGE_SIZE == 250
    assert cfg.ENV == "test"


@pytest.mark.parametrize("field", ["MIN_OWNER_APPRAISAL_CEILING", "WATERFALL_TOLERANCE"])
def test_ceilings_must_be_positive(field):
    with pytest.raises(ValidationError):
        AppConfig(**{field: 0})


def test_page_size_floor():
    with pytest.raises(ValidationError):
        AppConfig(DEFAULT_PAGE_SIZE=0)


def test_json_log_line_carries_context():
    record = logging.LogRecord("inmoflow.test", logging.WARNING, __file__, 1, "scenario_rejected", None, None)
    record.context = {"fields": ["anchorPrice"]}
    line = json.loads(JsonLogFormatter().format(record))
    assert line["level"] == "WARNING"
    assert line["message"] == "scenario_rejected"
    assert line["context"] == {"fields": ["anchorPrice"]}
    assert "ts" in line and "env" in line


def test_json_log_line_without_context():
    record = logging.LogRecord("inmoflow.test", logging.INFO, __file__, 1, "app_created", None, None)
    assert "context" not in json.loads(JsonLogFormatter().format(record))
