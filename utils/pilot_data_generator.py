# wiqaya_project_root/utils/pilot_data_generator.py
# Deterministic simulated pilot outcomes (contact, service delivery, satisfaction)
# for beneficiaries that have no real outcome data yet, plus pilot statistics.

import logging
import math
from collections import Counter
from dataclasses import dataclass, field
from datetime import date, timedelta
from typing import Dict, Iterable, List, Optional, Tuple

from config import app_config
from .patient_record import PatientClinicalRecord, PilotOutcomeRecord, RiskClassification, round_half_up
from .risk_classification import LabResults, classify_overall_risk

logger = logging.getLogger(__name__)

CONTACTED_RATE = getattr(app_config, 'PILOT_CONTACTED_RATE', 0.61)
SERVICE_DELIVERED_RATE = getattr(app_config, 'PILOT_SERVICE_DELIVERED_RATE', 0.81)
CONTACT_WINDOW_DAYS = getattr(app_config, 'PILOT_CONTACT_WINDOW_DAYS', 90)
SATISFACTION_MIN = getattr(app_config, 'PILOT_SATISFACTION_MIN', 3)
SATISFACTION_SPAN = getattr(app_config, 'PILOT_SATISFACTION_SPAN', 2)
SCORE_AT_RISK = getattr(app_config, 'RISK_SCORE_AT_RISK', 4)
SCORE_NEEDS_MONITORING = getattr(app_config, 'RISK_SCORE_NEEDS_MONITORING', 2)
NON_DELIVERY_REASONS: List[str] = getattr(app_config, 'NON_DELIVERY_REASONS', [])
NON_CONTACT_REASONS: List[str] = getattr(app_config, 'NON_CONTACT_REASONS', [])
NON_CONTACT_REASON_SHARES: List[float] = getattr(app_config, 'NON_CONTACT_REASON_SHARES', [])

_LAB_POINTS = {
    RiskClassification.AT_RISK: 2,
    RiskClassification.NEEDS_MONITORING: 1,
    RiskClassification.NORMAL: 0,
    RiskClassification.UNKNOWN: 0,
}


@dataclass(frozen=True)
class PilotStatistics:
    total: int = 0
    contacted: int = 0
    not_contacted: int = 0
    contacted_rate: int = 0
    service_delivered: int = 0
    service_not_delivered: int = 0
    service_delivered_rate: int = 0
    non_delivery_reasons: List[Tuple[str, int]] = field(default_factory=list)
    avg_satisfaction_score: float = 0.0
    avg_provider_satisfaction_score: float = 0.0
    risk_distribution: Dict[RiskClassification, int] = field(default_factory=dict)


def seeded_random(seed: float) -> float:
    """Fractional part of sin(seed) * 10000; a pure function of the seed, in [0, 1)."""
    x = math.sin(seed) * 10000
    return x - math.floor(x)


def hash_patient_id(patient_id: str) -> int:
    """
    Stable non-negative hash of a patient id: hash = int32(hash * 31 + unit) over
    the UTF-16 code units of the id, then the absolute value.
    """
    encoded = str(patient_id).encode('utf-16-le', 'surrogatepass')
    h = 0
    for i in range(0, len(encoded), 2):
        code_unit = encoded[i] | (encoded[i + 1] << 8)
        h = ((h * 31 + code_unit + 2**31) % 2**32) - 2**31
    return abs(h)


def calculate_risk_classification(age: Optional[int], labs: Optional[LabResults]) -> RiskClassification:
    """
    Points-based screening risk: 2 per at-risk lab, 1 per needs-monitoring lab.
    `age` is accepted for call-site symmetry and does not affect the result.
    """
    if labs is None or not labs.has_any:
        return RiskClassification.UNKNOWN
    per_lab = classify_overall_risk(labs)
    score = sum(_LAB_POINTS[c] for c in (per_lab.fbg, per_lab.hba1c, per_lab.ldl, per_lab.bp))
    if score >= SCORE_AT_RISK:
        return RiskClassification.AT_RISK
    if score >= SCORE_NEEDS_MONITORING:
        return RiskClassification.NEEDS_MONITORING
    return RiskClassification.NORMAL


def generate_pilot_outcome(
    patient_id_hash: int,
    age: Optional[int],
    labs: Optional[LabResults],
    reference_date: Optional[date] = None
) -> PilotOutcomeRecord:
    r1, r2, r3, r4 = (seeded_random(patient_id_hash + k) for k in range(4))
    risk = calculate_risk_classification(age, labs)

    if r1 >= CONTACTED_RATE:
        return PilotOutcomeRecord(contacted=False, risk_classification=risk)

    delivered = r2 < SERVICE_DELIVERED_RATE
    ref = reference_date or date.today()
    contact_date = ref - timedelta(days=math.floor(r3 * CONTACT_WINDOW_DAYS))

    reason = None
    if not delivered and NON_DELIVERY_REASONS:
        reason = NON_DELIVERY_REASONS[math.floor(r4 * len(NON_DELIVERY_REASONS))]
    return PilotOutcomeRecord(
        contacted=True,
        contact_date=contact_date,
        service_delivered=delivered,
        non_delivery_reason=reason,
        satisfaction_score=math.floor(SATISFACTION_MIN + r3 * SATISFACTION_SPAN) if delivered else None,
        provider_satisfaction_score=math.floor(SATISFACTION_MIN + r4 * SATISFACTION_SPAN) if delivered else None,
        risk_classification=risk,
    )


def simulate_outcome_for_record(record: PatientClinicalRecord, reference_date: Optional[date] = None) -> PilotOutcomeRecord:
    return generate_pilot_outcome(
        hash_patient_id(record.id), record.age, LabResults.from_record(record), reference_date
    )


def resolve_outcome(
    record: PatientClinicalRecord,
    reference_date: Optional[date] = None,
    simulate_missing: bool = True
) -> Optional[PilotOutcomeRecord]:
    """Real outcome when the record carries one; simulated or None otherwise."""
    if record.outcome is not None:
        return record.outcome
    if not simulate_missing:
        return None
    return simulate_outcome_for_record(record, reference_date)


def _mean(values: List[int]) -> float:
    if not values:
        return 0.0
    return round(sum(values) / len(values), 2)


def _pct(part: int, whole: int) -> int:
    if whole <= 0:
        return 0
    return round_half_up(part / whole * 100)


def summarize_outcomes(outcomes: Iterable[PilotOutcomeRecord]) -> PilotStatistics:
    outcomes = list(outcomes)
    total = len(outcomes)
    contacted = [o for o in outcomes if o.contacted]
    delivered = sum(1 for o in contacted if o.service_delivered)

    reasons = Counter(o.non_delivery_reason for o in contacted if not o.service_delivered and o.non_delivery_reason)
    # Counter.most_common keeps first-seen order among ties
    risk_counts = Counter(o.risk_classification or RiskClassification.UNKNOWN for o in outcomes)

    return PilotStatistics(
        total=total,
        contacted=len(contacted),
        not_contacted=total - len(contacted),
        contacted_rate=_pct(len(contacted), total),
        service_delivered=delivered,
        service_not_delivered=len(contacted) - delivered,
        service_delivered_rate=_pct(delivered, len(contacted)),
        non_delivery_reasons=reasons.most_common(),
        avg_satisfaction_score=_mean([o.satisfaction_score for o in contacted if o.satisfaction_score is not None]),
        avg_provider_satisfaction_score=_mean([o.provider_satisfaction_score for o in contacted if o.provider_satisfaction_score is not None]),
        risk_distribution=dict(risk_counts),
    )


def calculate_pilot_statistics(
    records: Iterable[PatientClinicalRecord],
    reference_date: Optional[date] = None,
    simulate_missing: bool = True,
    source_context: str = "PilotStatistics"
) -> PilotStatistics:
    """
    Pilot program KPIs. Records with a real outcome use it; the rest are
    simulated when `simulate_missing` is set and left out otherwise.
    """
    outcomes: List[PilotOutcomeRecord] = []
    skipped = 0
    for record in records:
        outcome = resolve_outcome(record, reference_date, simulate_missing)
        if outcome is None:
            skipped += 1
            continue
        outcomes.append(outcome)
    if skipped:
        logger.info(f"({source_context}) {skipped} records without outcome data left out (simulation disabled).")
    stats = summarize_outcomes(outcomes)
    logger.debug(f"({source_context}) Pilot stats: total={stats.total}, contacted={stats.contacted}, delivered={stats.service_delivered}")
    return stats


def estimate_non_contact_reasons(not_contacted: int) -> List[Tuple[str, int]]:
    """Split the not-contacted count across the fixed reason shares."""
    return [
        (reason, round_half_up(max(not_contacted, 0) * share))
        for reason, share in zip(NON_CONTACT_REASONS, NON_CONTACT_REASON_SHARES)
    ]
