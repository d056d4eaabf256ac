# wiqaya_project_root/tests/test_pilot_data_generator.py
# Pytest tests for simulated pilot outcomes in utils.pilot_data_generator.py

import pytest
from datetime import date, timedelta

from utils.pilot_data_generator import (
    calculate_pilot_statistics,
    calculate_risk_classification,
    estimate_non_contact_reasons,
    generate_pilot_outcome,
    hash_patient_id,
    resolve_outcome,
    seeded_random,
)
from utils.risk_classification import LabResults
from utils.patient_record import PatientClinicalRecord, PilotOutcomeRecord, RiskClassification
from config import app_config


# --- Hashing & seeded draws ---

def test_hash_patient_id_known_values():
    assert hash_patient_id("") == 0
    assert hash_patient_id("abc") == 96354
    # Astral characters hash as two UTF-16 code units
    assert hash_patient_id("\U0001F600") == 55357 * 31 + 56832
    # A lone surrogate (e.g. from surrogateescape decoding) is hashed as its own code unit
    assert hash_patient_id("a\ud800b") == (97 * 31 + 0xD800) * 31 + 98


def test_hash_patient_id_is_stable_and_non_negative():
    assert hash_patient_id("abc-123") == hash_patient_id("abc-123")
    long_id = "مستفيد-" * 40
    assert 0 <= hash_patient_id(long_id) <= 2**31


def test_seeded_random_range_and_purity():
    draws = [seeded_random(s) for s in range(500)]
    assert all(0 <= d < 1 for d in draws)
    assert seeded_random(12345) == seeded_random(12345)


# --- Outcome generation ---

def test_generate_pilot_outcome_is_deterministic(reference_date):
    labs = LabResults(hba1c=8.1, bp_last_visit="150/95")
    seed = hash_patient_id("abc-123")
    first = generate_pilot_outcome(seed, 60, labs, reference_date)
    second = generate_pilot_outcome(seed, 60, labs, reference_date)
    assert first == second


def test_outcome_field_invariants(reference_date):
    for seed in range(300):
        outcome = generate_pilot_outcome(seed, 50, None, reference_date)
        assert outcome.risk_classification is RiskClassification.UNKNOWN
        if not outcome.contacted:
            assert outcome.contact_date is None
            assert outcome.service_delivered is None
            assert outcome.satisfaction_score is None and outcome.provider_satisfaction_score is None
            continue
        assert reference_date - timedelta(days=app_config.PILOT_CONTACT_WINDOW_DAYS - 1) <= outcome.contact_date <= reference_date
        if outcome.service_delivered:
            assert outcome.non_delivery_reason is None
            assert outcome.satisfaction_score in (3, 4)
            assert outcome.provider_satisfaction_score in (3, 4)
        else:
            assert outcome.non_delivery_reason in app_config.NON_DELIVERY_REASONS
            assert outcome.satisfaction_score is None


def test_contact_and_delivery_rates_approximate_pilot(reference_date):
    outcomes = [generate_pilot_outcome(seed, None, None, reference_date) for seed in range(2000)]
    contacted = [o for o in outcomes if o.contacted]
    contacted_share = len(contacted) / len(outcomes)
    delivered_share = sum(1 for o in contacted if o.service_delivered) / len(contacted)
    assert abs(contacted_share - app_config.PILOT_CONTACTED_RATE) < 0.06
    assert abs(delivered_share - app_config.PILOT_SERVICE_DELIVERED_RATE) < 0.06


def test_risk_classification_computed_when_not_contacted(reference_date):
    labs = LabResults(fasting_blood_glucose=130, hba1c=6.8)
    outcomes = [generate_pilot_outcome(seed, 45, labs, reference_date) for seed in range(50)]
    assert any(not o.contacted for o in outcomes)
    assert all(o.risk_classification is RiskClassification.AT_RISK for o in outcomes)


# --- Points-based risk classification ---

@pytest.mark.parametrize("labs, expected", [
    (None, RiskClassification.UNKNOWN),
    (LabResults(), RiskClassification.UNKNOWN),
    (LabResults(fasting_blood_glucose=130, hba1c=6.6), RiskClassification.AT_RISK),
    (LabResults(ldl=140, bp_last_visit="135/85"), RiskClassification.NEEDS_MONITORING),
    (LabResults(ldl=165), RiskClassification.NEEDS_MONITORING),
    (LabResults(hba1c=5.8), RiskClassification.NORMAL),
    (LabResults(bp_last_visit="abc"), RiskClassification.NORMAL),
])
def test_calculate_risk_classification(labs, expected):
    assert calculate_risk_classification(60, labs) is expected


# --- Pilot statistics ---

def _record_with_outcome(pid, outcome):
    return PatientClinicalRecord(id=pid, outcome=outcome)


def test_pilot_statistics_from_real_outcomes():
    reason = app_config.NON_DELIVERY_REASONS[1]
    records = [
        _record_with_outcome('R1', PilotOutcomeRecord(contacted=True, service_delivered=True, satisfaction_score=5,
                                                      provider_satisfaction_score=4, risk_classification=RiskClassification.NORMAL)),
        _record_with_outcome('R2', PilotOutcomeRecord(contacted=True, service_delivered=False, non_delivery_reason=reason)),
        _record_with_outcome('R3', PilotOutcomeRecord(contacted=True, service_delivered=False, non_delivery_reason=reason)),
        _record_with_outcome('R4', PilotOutcomeRecord(contacted=False)),
    ]
    stats = calculate_pilot_statistics(records)
    assert stats.total == 4
    assert (stats.contacted, stats.not_contacted, stats.contacted_rate) == (3, 1, 75)
    assert (stats.service_delivered, stats.service_not_delivered, stats.service_delivered_rate) == (1, 2, 33)
    assert stats.non_delivery_reasons == [(reason, 2)]
    assert stats.avg_satisfaction_score == 5.0
    assert stats.avg_provider_satisfaction_score == 4.0
    assert stats.risk_distribution == {RiskClassification.NORMAL: 1, RiskClassification.UNKNOWN: 3}


def test_pilot_statistics_simulation_toggle(healthy_record, diabetic_record, reference_date):
    real = _record_with_outcome('R1', PilotOutcomeRecord(contacted=False))
    simulated = calculate_pilot_statistics([real, healthy_record, diabetic_record], reference_date=reference_date)
    assert simulated.total == 3
    live_only = calculate_pilot_statistics([real, healthy_record, diabetic_record], simulate_missing=False)
    assert live_only.total == 1
    assert live_only.contacted == 0


def test_pilot_statistics_empty():
    stats = calculate_pilot_statistics([])
    assert stats.total == 0
    assert stats.contacted_rate == 0 and stats.service_delivered_rate == 0
    assert stats.avg_satisfaction_score == 0.0
    assert stats.non_delivery_reasons == []


def test_resolve_outcome_prefers_real_data(diabetic_record, reference_date):
    real = PilotOutcomeRecord(contacted=True, service_delivered=True, satisfaction_score=5)
    record = PatientClinicalRecord(id=diabetic_record.id, outcome=real)
    assert resolve_outcome(record, reference_date) is real
    assert resolve_outcome(diabetic_record, reference_date, simulate_missing=False) is None
    assert resolve_outcome(diabetic_record, reference_date) == resolve_outcome(diabetic_record, reference_date)


def test_estimate_non_contact_reasons():
    estimate = estimate_non_contact_reasons(100)
    assert [count for _, count in estimate] == [35, 25, 18, 12, 10]
    assert [reason for reason, _ in estimate] == app_config.NON_CONTACT_REASONS
    assert all(count == 0 for _, count in estimate_non_contact_reasons(0))
