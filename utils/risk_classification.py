# wiqaya_project_root/utils/risk_classification.py
# Per-lab risk classification for the preventive care screening view.

import logging
from dataclasses import dataclass
from typing import Dict, List, Optional

from config import app_config
from .patient_record import Gender, PatientClinicalRecord, RiskClassification
from .target_calculator import parse_bp_reading

logger = logging.getLogger(__name__)

FBG_HIGH = getattr(app_config, 'RISK_FBG_HIGH', 126)
FBG_MODERATE = getattr(app_config, 'RISK_FBG_MODERATE', 100)
HBA1C_HIGH = getattr(app_config, 'RISK_HBA1C_HIGH', 6.5)
HBA1C_MODERATE = getattr(app_config, 'RISK_HBA1C_MODERATE', 5.7)
LDL_HIGH = getattr(app_config, 'RISK_LDL_HIGH', 160)
LDL_MODERATE = getattr(app_config, 'RISK_LDL_MODERATE', 130)
BP_HIGH = getattr(app_config, 'RISK_BP_HIGH', (140, 90))
BP_MODERATE = getattr(app_config, 'RISK_BP_MODERATE', (130, 80))


@dataclass(frozen=True)
class LabResults:
    fasting_blood_glucose: Optional[float] = None
    hba1c: Optional[float] = None
    ldl: Optional[float] = None
    bp_last_visit: Optional[str] = None

    @classmethod
    def from_record(cls, record: PatientClinicalRecord) -> "LabResults":
        return cls(
            fasting_blood_glucose=record.fasting_blood_glucose,
            hba1c=record.hba1c,
            ldl=record.ldl,
            bp_last_visit=record.bp_reading,
        )

    @property
    def has_any(self) -> bool:
        return any(v is not None for v in (self.fasting_blood_glucose, self.hba1c, self.ldl)) or bool(self.bp_last_visit)


@dataclass(frozen=True)
class RiskClassificationResult:
    overall: RiskClassification
    bp: RiskClassification
    hba1c: RiskClassification
    fbg: RiskClassification
    ldl: RiskClassification


@dataclass(frozen=True)
class ScreeningEligibility:
    bp: bool
    fbg: bool
    lipids: bool


def _by_threshold(value: Optional[float], high: float, moderate: float) -> RiskClassification:
    if value is None:
        return RiskClassification.UNKNOWN
    if value >= high:
        return RiskClassification.AT_RISK
    if value >= moderate:
        return RiskClassification.NEEDS_MONITORING
    return RiskClassification.NORMAL


def classify_bp(bp: Optional[str]) -> RiskClassification:
    parsed = parse_bp_reading(bp)
    if parsed is None:
        return RiskClassification.UNKNOWN
    sys_val, dia_val = parsed
    if sys_val >= BP_HIGH[0] or dia_val >= BP_HIGH[1]:
        return RiskClassification.AT_RISK
    if sys_val >= BP_MODERATE[0] or dia_val >= BP_MODERATE[1]:
        return RiskClassification.NEEDS_MONITORING
    return RiskClassification.NORMAL


def classify_hba1c(value: Optional[float]) -> RiskClassification:
    return _by_threshold(value, HBA1C_HIGH, HBA1C_MODERATE)


def classify_fbg(value: Optional[float]) -> RiskClassification:
    return _by_threshold(value, FBG_HIGH, FBG_MODERATE)


def classify_ldl(value: Optional[float]) -> RiskClassification:
    return _by_threshold(value, LDL_HIGH, LDL_MODERATE)


def classify_overall_risk(labs: LabResults) -> RiskClassificationResult:
    """Worst known per-lab classification wins; unknown only when nothing is known."""
    bp = classify_bp(labs.bp_last_visit)
    hba1c = classify_hba1c(labs.hba1c)
    fbg = classify_fbg(labs.fasting_blood_glucose)
    ldl = classify_ldl(labs.ldl)

    known = [c for c in (bp, hba1c, fbg, ldl) if c is not RiskClassification.UNKNOWN]
    overall = RiskClassification.UNKNOWN
    if known:
        if RiskClassification.AT_RISK in known:
            overall = RiskClassification.AT_RISK
        elif RiskClassification.NEEDS_MONITORING in known:
            overall = RiskClassification.NEEDS_MONITORING
        else:
            overall = RiskClassification.NORMAL
    return RiskClassificationResult(overall=overall, bp=bp, hba1c=hba1c, fbg=fbg, ldl=ldl)


_RECOMMENDATIONS: Dict[RiskClassification, List[str]] = {
    RiskClassification.NORMAL: [
        'متابعة سنوية روتينية',
        'الحفاظ على نمط حياة صحي',
        'تثقيف صحي مستمر',
    ],
    RiskClassification.NEEDS_MONITORING: [
        'إعادة الفحص خلال 3-6 أشهر',
        'تعديل نمط الحياة (غذاء، رياضة)',
        'متابعة دورية مع الفريق الصحي',
        'تثقيف مكثف حول عوامل الخطر',
    ],
    RiskClassification.AT_RISK: [
        'تحويل مباشر للطبيب',
        'بدء العلاج الدوائي إن لزم',
        'متابعة لصيقة كل شهر',
        'تقييم شامل للمضاعفات',
        'تثقيف طارئ للمستفيد',
    ],
    RiskClassification.UNKNOWN: ['إجراء الفحوصات اللازمة للتقييم'],
}


def get_recommendations(risk: RiskClassification) -> List[str]:
    return list(_RECOMMENDATIONS.get(risk, _RECOMMENDATIONS[RiskClassification.UNKNOWN]))


def get_screening_eligibility(age: Optional[int], gender: Gender) -> ScreeningEligibility:
    age_num = age or 0
    lipids_min_age = app_config.SCREENING_LIPIDS_MIN_AGE_MALE if gender is Gender.MALE \
        else app_config.SCREENING_LIPIDS_MIN_AGE_FEMALE
    return ScreeningEligibility(
        bp=age_num >= app_config.SCREENING_BP_MIN_AGE,
        fbg=age_num >= app_config.SCREENING_FBG_MIN_AGE,
        lipids=age_num >= lipids_min_age,
    )
