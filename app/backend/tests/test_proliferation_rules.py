from __future__ import annotations

import uuid

import pytest

from app.models.entities import ProliferationPreferenceMode, ProliferationSource
from app.services.proliferation_reporting_service import ProliferationReportKind, parse_report_kind
from app.services.proliferation_service import build_effective_combos, effective_total, parse_source

SDD = ProliferationSource.SDD
ABW515 = ProliferationSource.ABW515


@pytest.mark.parametrize(
    ("mode", "yearly", "granular", "expected"),
    [
        (None, 10, 4, 14),
        (ProliferationPreferenceMode.USE_YEARLY_AND_GRANULAR, 10, 4, 14),
        (ProliferationPreferenceMode.USE_YEARLY, 10, 4, 10),
        (ProliferationPreferenceMode.USE_GRANULAR, 10, 4, 4),
        (ProliferationPreferenceMode.AUTO, 10, 4, 4),
        (ProliferationPreferenceMode.AUTO, 10, 0, 10),
    ],
)
def test_effective_total_for_sdd(mode, yearly: int, granular: int, expected: int) -> None:
    assert effective_total(SDD, mode, yearly=yearly, granular=granular) == expected


@pytest.mark.parametrize("mode", [None, ProliferationPreferenceMode.AUTO, ProliferationPreferenceMode.USE_GRANULAR])
def test_abw515_always_uses_yearly(mode) -> None:
    assert effective_total(ABW515, mode, yearly=7, granular=3) == 7


def test_parse_source_accepts_common_spellings() -> None:
    assert parse_source("sdd") is SDD
    assert parse_source("ABW 515") is ABW515
    assert parse_source("515ABW") is ABW515
    assert parse_source("abw-515") is ABW515
    assert parse_source("unknown") is None
    assert parse_source(None) is None


def test_build_effective_combos_merges_totals_and_reports_variance() -> None:
    project_id = uuid.uuid4()
    yearly_key = (project_id, SDD, 2023)
    granular_only_key = (project_id, SDD, 2024)

    combos = build_effective_combos({yearly_key: 12}, {yearly_key: 5, granular_only_key: 3}, {})

    by_year = {combo.year: combo for combo in combos}
    assert by_year[2023].effective == 17
    assert by_year[2023].variance == 7
    assert by_year[2024].yearly == 0
    assert by_year[2024].effective == 3


def test_parse_report_kind_is_lenient() -> None:
    assert parse_report_kind("project-to-units") is ProliferationReportKind.PROJECT_TO_UNITS
    assert parse_report_kind("YearlyReconciliation") is ProliferationReportKind.YEARLY_RECONCILIATION
