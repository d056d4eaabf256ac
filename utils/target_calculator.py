# wiqaya_project_root/utils/target_calculator.py
# Age- and comorbidity-adjusted clinical targets (HbA1c, BP, LDL, fasting glucose).

import logging
import re
from dataclasses import dataclass
from enum import Enum
from typing import Optional, Tuple, Union

from config import app_config
from .patient_record import PatientClinicalRecord

logger = logging.getLogger(__name__)

# Fallback tolerances
NEAR_TOLERANCE_PCT = getattr(app_config, 'TARGET_NEAR_TOLERANCE_PCT', 10)
BP_NEAR_SYSTOLIC_MARGIN = getattr(app_config, 'TARGET_BP_NEAR_SYSTOLIC_MARGIN', 10)
BP_NEAR_DIASTOLIC_MARGIN = getattr(app_config, 'TARGET_BP_NEAR_DIASTOLIC_MARGIN', 5)


@dataclass(frozen=True)
class PatientProfile:
    age: Optional[int] = None
    has_diabetes: bool = False
    has_hypertension: bool = False
    has_dyslipidemia: bool = False
    has_ascvd: bool = False
    has_ckd: bool = False
    has_heart_failure: bool = False

    @classmethod
    def from_record(cls, record: PatientClinicalRecord) -> "PatientProfile":
        return cls(
            age=record.age,
            has_diabetes=record.has_diabetes,
            has_hypertension=record.has_hypertension,
            has_dyslipidemia=record.has_dyslipidemia,
            has_ascvd=record.has_ascvd,
            has_ckd=record.has_ckd,
            has_heart_failure=record.has_heart_failure,
        )


@dataclass(frozen=True)
class TargetBand:
    target: str
    upper_limit: float
    description: str
    description_ar: str


@dataclass(frozen=True)
class BPTarget:
    systolic_target: str
    systolic_max: int
    diastolic_target: str
    diastolic_max: int
    description: str
    description_ar: str


@dataclass(frozen=True)
class PatientTargets:
    hba1c: TargetBand
    bp: BPTarget
    ldl: TargetBand
    fbg: TargetBand


class TargetStatus(str, Enum):
    NO_READING = "no_reading"
    INVALID_READING = "invalid_reading"
    AT_TARGET = "at_target"
    NEAR_TARGET = "near_target"
    NEEDS_IMPROVEMENT = "needs_improvement"

    @property
    def label_ar(self) -> str:
        return app_config.TARGET_STATUS_LABELS_AR[self.value]

    @property
    def is_at_target(self) -> Optional[bool]:
        if self in (TargetStatus.NO_READING, TargetStatus.INVALID_READING):
            return None
        return self is TargetStatus.AT_TARGET


# --- I. Target Tables ---
def _hba1c_target(profile: PatientProfile) -> TargetBand:
    # ADA-style brackets; only diabetics get the relaxed, age-adjusted ceilings
    age = profile.age or 0
    comorbidities = sum([
        profile.has_hypertension, profile.has_dyslipidemia,
        profile.has_ascvd, profile.has_ckd, profile.has_heart_failure
    ])
    multiple = comorbidities >= 2

    if not profile.has_diabetes:
        return TargetBand('<5.7%', 5.7, 'non-diabetic', 'غير مصاب بالسكري')
    if age < 40:
        return TargetBand('<6.5%', 6.5, 'young healthy', 'شاب صحي')
    if age < 65:
        return TargetBand('<7.0%', 7.0, 'adult', 'بالغ')
    if age < 70:
        if multiple:
            return TargetBand('<7.7%', 7.7, 'elderly + comorbidities', 'كبير سن + أمراض مصاحبة')
        return TargetBand('<7.5%', 7.5, 'older adult', 'كبير سن')
    if multiple:
        return TargetBand('<8.0%', 8.0, 'elderly + multiple conditions', 'مسن + أمراض متعددة')
    return TargetBand('<7.5%', 7.5, 'elderly', 'مسن')


def _bp_target(profile: PatientProfile) -> BPTarget:
    age = profile.age or 0
    high_risk = profile.has_ascvd or profile.has_ckd or profile.has_heart_failure

    if age < 65:
        return BPTarget('<130', 130, '<80', 80, 'adult', 'بالغ')
    if age < 75 and high_risk:
        return BPTarget('<120', 120, '<80', 80, 'high risk', 'خطورة عالية')
    if age < 80:
        return BPTarget('<140', 140, '<80', 80, 'older adult', 'كبير سن')
    return BPTarget('<150', 150, '<90', 90, 'elderly', 'مسن')


def _ldl_target(profile: PatientProfile) -> TargetBand:
    if profile.has_ascvd:
        return TargetBand('<55', 55, 'very high risk (ASCVD)', 'خطورة عالية جداً (ASCVD)')
    if profile.has_diabetes and (profile.has_hypertension or profile.has_dyslipidemia):
        return TargetBand('<70', 70, 'high risk', 'خطورة عالية')
    return TargetBand('<100', 100, 'standard', 'معياري')


def _fbg_target(profile: PatientProfile) -> TargetBand:
    if not profile.has_diabetes:
        return TargetBand('<100', 100, 'non-diabetic', 'غير مصاب بالسكري')
    return TargetBand('<130', 130, 'diabetic', 'مصاب بالسكري')


def compute_targets(profile: Union[PatientProfile, PatientClinicalRecord]) -> PatientTargets:
    """Clinical targets for a patient. Total: an all-unknown profile gets the adult defaults."""
    if isinstance(profile, PatientClinicalRecord):
        profile = PatientProfile.from_record(profile)
    return PatientTargets(
        hba1c=_hba1c_target(profile),
        bp=_bp_target(profile),
        ldl=_ldl_target(profile),
        fbg=_fbg_target(profile),
    )


# --- II. Status Helpers ---
def is_at_target(value: Optional[float], target: float, comparison: str = 'less') -> Optional[bool]:
    if value is None:
        return None
    if comparison == 'less':
        return value < target
    if comparison == 'less_or_equal':
        return value <= target
    raise ValueError(f"Unknown comparison '{comparison}'")


def classify_against_target(value: Optional[float], ceiling: float) -> TargetStatus:
    """
    At target below the ceiling, near target up to +10% over it, otherwise needs improvement.
    A non-positive ceiling has no tolerance band: at target below it, needs improvement otherwise.
    """
    if value is None:
        return TargetStatus.NO_READING
    if value < ceiling:
        return TargetStatus.AT_TARGET
    if ceiling <= 0:
        logger.debug(f"Non-positive target ceiling {ceiling}; no near-target band applied")
        return TargetStatus.NEEDS_IMPROVEMENT
    percent_over = (value - ceiling) / ceiling * 100
    if percent_over <= NEAR_TOLERANCE_PCT:
        return TargetStatus.NEAR_TARGET
    return TargetStatus.NEEDS_IMPROVEMENT


def classify_bp_against_target(
    systolic: Optional[float], diastolic: Optional[float],
    target_systolic: float, target_diastolic: float
) -> TargetStatus:
    if systolic is None or diastolic is None:
        return TargetStatus.NO_READING
    if systolic < target_systolic and diastolic < target_diastolic:
        return TargetStatus.AT_TARGET
    if systolic <= target_systolic + BP_NEAR_SYSTOLIC_MARGIN and diastolic <= target_diastolic + BP_NEAR_DIASTOLIC_MARGIN:
        return TargetStatus.NEAR_TARGET
    return TargetStatus.NEEDS_IMPROVEMENT


_LEADING_INT = re.compile(r'^\s*([+-]?\d+)')


def parse_bp_reading(reading: Optional[str]) -> Optional[Tuple[int, int]]:
    """Parse "sys/dia"; each side keeps its leading integer ("135.5" -> 135). None when unparseable."""
    if not reading:
        return None
    parts = str(reading).split('/')
    if len(parts) != 2:
        return None
    sys_match = _LEADING_INT.match(parts[0])
    dia_match = _LEADING_INT.match(parts[1])
    if not sys_match or not dia_match:
        return None
    return int(sys_match.group(1)), int(dia_match.group(1))


def classify_bp_reading_against_target(
    reading: Optional[str], target_systolic: float, target_diastolic: float
) -> TargetStatus:
    if not reading:
        return TargetStatus.NO_READING
    parsed = parse_bp_reading(reading)
    if parsed is None:
        logger.debug(f"Unparseable BP reading '{reading}'")
        return TargetStatus.INVALID_READING
    return classify_bp_against_target(parsed[0], parsed[1], target_systolic, target_diastolic)
