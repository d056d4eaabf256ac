# wiqaya_project_root/tests/test_target_calculator.py
# Pytest tests for age- and comorbidity-adjusted targets in utils.target_calculator.py

import pytest

from utils.target_calculator import (
    PatientProfile,
    TargetStatus,
    classify_against_target,
    classify_bp_against_target,
    classify_bp_reading_against_target,
    compute_targets,
    is_at_target,
    parse_bp_reading,
)


def test_elderly_multimorbid_hba1c_target():
    targets = compute_targets(PatientProfile(age=72, has_diabetes=True, has_hypertension=True, has_dyslipidemia=True))
    assert targets.hba1c.upper_limit == 8.0
    assert targets.hba1c.description == "elderly + multiple conditions"
    assert targets.hba1c.target == '<8.0%'


@pytest.mark.parametrize("profile, expected_limit, expected_description", [
    (PatientProfile(age=50), 5.7, "non-diabetic"),
    (PatientProfile(age=35, has_diabetes=True), 6.5, "young healthy"),
    (PatientProfile(age=40, has_diabetes=True), 7.0, "adult"),
    (PatientProfile(age=66, has_diabetes=True), 7.5, "older adult"),
    (PatientProfile(age=66, has_diabetes=True, has_ckd=True, has_ascvd=True), 7.7, "elderly + comorbidities"),
    (PatientProfile(age=70, has_diabetes=True, has_hypertension=True), 7.5, "elderly"),
    (PatientProfile(age=None, has_diabetes=True), 6.5, "young healthy"),
])
def test_hba1c_target_brackets(profile, expected_limit, expected_description):
    band = compute_targets(profile).hba1c
    assert band.upper_limit == expected_limit
    assert band.description == expected_description


@pytest.mark.parametrize("profile, expected_sys, expected_dia, expected_description", [
    (PatientProfile(age=45), 130, 80, "adult"),
    (PatientProfile(age=70, has_ckd=True), 120, 80, "high risk"),
    (PatientProfile(age=76, has_heart_failure=True), 140, 80, "older adult"),
    (PatientProfile(age=68), 140, 80, "older adult"),
    (PatientProfile(age=85, has_ascvd=True), 150, 90, "elderly"),
])
def test_bp_target_brackets(profile, expected_sys, expected_dia, expected_description):
    bp = compute_targets(profile).bp
    assert (bp.systolic_max, bp.diastolic_max) == (expected_sys, expected_dia)
    assert bp.description == expected_description


def test_ldl_and_fbg_targets():
    assert compute_targets(PatientProfile(has_ascvd=True, has_diabetes=True)).ldl.upper_limit == 55
    assert compute_targets(PatientProfile(has_diabetes=True, has_dyslipidemia=True)).ldl.upper_limit == 70
    assert compute_targets(PatientProfile(has_diabetes=True)).ldl.upper_limit == 100
    assert compute_targets(PatientProfile(has_diabetes=True)).fbg.upper_limit == 130
    assert compute_targets(PatientProfile()).fbg.description == "non-diabetic"


def test_compute_targets_accepts_records(multimorbid_record):
    assert compute_targets(multimorbid_record) == compute_targets(PatientProfile.from_record(multimorbid_record))


def test_all_unknown_profile_gets_defaults():
    targets = compute_targets(PatientProfile())
    assert targets.hba1c.upper_limit == 5.7
    assert targets.bp.systolic_max == 130
    assert targets.ldl.upper_limit == 100
    assert targets.hba1c.description_ar


@pytest.mark.parametrize("value, ceiling, expected", [
    (None, 7.0, TargetStatus.NO_READING),
    (6.9, 7.0, TargetStatus.AT_TARGET),
    (7.0, 7.0, TargetStatus.NEAR_TARGET),
    (7.6, 7.0, TargetStatus.NEAR_TARGET),
    (7.8, 7.0, TargetStatus.NEEDS_IMPROVEMENT),
])
def test_classify_against_target(value, ceiling, expected):
    assert classify_against_target(value, ceiling) is expected


def test_classify_against_target_is_total_for_non_positive_ceiling():
    assert classify_against_target(5.0, 0) is TargetStatus.NEEDS_IMPROVEMENT
    assert classify_against_target(0, 0) is TargetStatus.NEEDS_IMPROVEMENT
    assert classify_against_target(-1.0, 0) is TargetStatus.AT_TARGET
    assert classify_against_target(None, -5) is TargetStatus.NO_READING


@pytest.mark.parametrize("systolic, diastolic, expected", [
    (125, 75, TargetStatus.AT_TARGET),
    (130, 75, TargetStatus.NEAR_TARGET),
    (140, 85, TargetStatus.NEAR_TARGET),
    (141, 80, TargetStatus.NEEDS_IMPROVEMENT),
    (135, 86, TargetStatus.NEEDS_IMPROVEMENT),
    (None, 80, TargetStatus.NO_READING),
])
def test_classify_bp_against_target(systolic, diastolic, expected):
    assert classify_bp_against_target(systolic, diastolic, 130, 80) is expected


def test_bp_reading_string_forms():
    assert parse_bp_reading("135.5/85") == (135, 85)
    assert parse_bp_reading(" 120 / 80 ") == (120, 80)
    assert parse_bp_reading("high") is None
    assert classify_bp_reading_against_target("125/75", 130, 80) is TargetStatus.AT_TARGET
    assert classify_bp_reading_against_target("abc/def", 130, 80) is TargetStatus.INVALID_READING
    assert classify_bp_reading_against_target(None, 130, 80) is TargetStatus.NO_READING


def test_is_at_target_tri_state():
    assert is_at_target(None, 7.0) is None
    assert is_at_target(6.5, 7.0) is True
    assert is_at_target(7.0, 7.0) is False
    assert is_at_target(7.0, 7.0, comparison='less_or_equal') is True
    with pytest.raises(ValueError):
        is_at_target(7.0, 7.0, comparison='greater')


def test_status_labels():
    assert TargetStatus.AT_TARGET.is_at_target is True
    assert TargetStatus.NEAR_TARGET.is_at_target is False
    assert TargetStatus.NO_READING.is_at_target is None
    assert TargetStatus.NEEDS_IMPROVEMENT.label_ar == "يحتاج تحسين"
