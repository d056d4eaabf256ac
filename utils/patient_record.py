# wiqaya_project_root/utils/patient_record.py
# Patient clinical record model, override sum type, and record normalisation.

from __future__ import annotations

import logging
import math
from dataclasses import dataclass, field
from datetime import date
from enum import Enum
from typing import Any, Callable, Generic, List, Mapping, Optional, TypeVar, Union

from config import app_config

logger = logging.getLogger(__name__)

T = TypeVar("T")


# --- I. Override Sum Type ---
@dataclass(frozen=True)
class Provided(Generic[T]):
    """A pre-computed value that arrived with the record and wins over computation."""
    value: T


class _Compute:
    """Marker: no pre-computed value, derive it from the record."""
    _instance = None

    def __new__(cls):
        if cls._instance is None:
            cls._instance = super().__new__(cls)
        return cls._instance

    def __repr__(self) -> str:
        return "COMPUTE"

    def __bool__(self) -> bool:
        return False


COMPUTE = _Compute()

Override = Union[Provided[T], _Compute]


def resolve(override: "Override[T]", compute: Callable[[], T]) -> T:
    """Return the provided value verbatim, otherwise run `compute`."""
    if isinstance(override, Provided):
        return override.value
    return compute()


# --- II. Enumerations ---
class Gender(str, Enum):
    MALE = "male"
    FEMALE = "female"
    UNKNOWN = "unknown"

    @classmethod
    def parse(cls, raw: Any) -> "Gender":
        if isinstance(raw, Gender):
            return raw
        if raw is None or (isinstance(raw, float) and math.isnan(raw)):
            return cls.UNKNOWN
        text = str(raw).strip().lower()
        for gender_key, keywords in app_config.GENDER_KEYWORDS.items():
            if text in keywords:
                return cls(gender_key)
        return cls.UNKNOWN


class RegistrationStatus(str, Enum):
    """
    Program registration state. Ordered from strongest to weakest engagement;
    structured sources should send the value directly, free text is parsed.
    """
    REGISTERED_ELIGIBLE = "registered_eligible"
    REGISTERED = "registered"
    TWO_VISITS = "two_visits"
    ONE_VISIT = "one_visit"
    NONE = "none"

    @classmethod
    def parse(cls, raw: Any) -> "RegistrationStatus":
        """
        Map a legacy free-text status to the enum.

        Keyword precedence mirrors the screening sheet: registered + eligible,
        then registered, then two visits, then one visit. Eligible alone carries
        no engagement signal.
        """
        if isinstance(raw, RegistrationStatus):
            return raw
        if raw is None or (isinstance(raw, float) and math.isnan(raw)):
            return cls.NONE
        text = str(raw).strip().lower()
        if not text:
            return cls.NONE
        try:
            return cls(text)
        except ValueError:
            pass
        keywords = app_config.REGISTRATION_KEYWORDS

        def _has(group: str) -> bool:
            return any(kw in text for kw in keywords.get(group, []))

        if _has("registered") and _has("eligible"):
            return cls.REGISTERED_ELIGIBLE
        if _has("registered"):
            return cls.REGISTERED
        if _has("two_visits"):
            return cls.TWO_VISITS
        if _has("one_visit"):
            return cls.ONE_VISIT
        return cls.NONE


class PriorityLevel(str, Enum):
    CONSULTANT_PLUS_EDUCATOR = "consultant_plus_educator"
    HIGH_PRIORITY = "high_priority"
    ROUTINE = "routine"

    @property
    def rank(self) -> int:
        """0 is the most urgent tier."""
        return _PRIORITY_RANK[self]

    @property
    def label_ar(self) -> str:
        return app_config.PRIORITY_LABELS_AR[self.value]

    def __lt__(self, other):
        if not isinstance(other, PriorityLevel):
            return NotImplemented
        # More urgent compares greater.
        return self.rank > other.rank

    def __le__(self, other):
        if not isinstance(other, PriorityLevel):
            return NotImplemented
        return self.rank >= other.rank

    def __gt__(self, other):
        if not isinstance(other, PriorityLevel):
            return NotImplemented
        return self.rank < other.rank

    def __ge__(self, other):
        if not isinstance(other, PriorityLevel):
            return NotImplemented
        return self.rank <= other.rank

    @classmethod
    def parse(cls, raw: Any) -> Optional["PriorityLevel"]:
        """Accept enum codes or the Arabic display labels; None when unrecognised."""
        if isinstance(raw, PriorityLevel):
            return raw
        if raw is None:
            return None
        text = str(raw).strip()
        for level in cls:
            if text == level.value or text == level.label_ar:
                return level
        return None


_PRIORITY_RANK = {
    PriorityLevel.CONSULTANT_PLUS_EDUCATOR: 0,
    PriorityLevel.HIGH_PRIORITY: 1,
    PriorityLevel.ROUTINE: 2,
}


class RiskClassification(str, Enum):
    UNKNOWN = "unknown"
    NORMAL = "normal"
    NEEDS_MONITORING = "needs_monitoring"
    AT_RISK = "at_risk"

    @property
    def label_ar(self) -> str:
        return app_config.RISK_LABELS_AR[self.value]

    @classmethod
    def parse(cls, raw: Any) -> "RiskClassification":
        if isinstance(raw, RiskClassification):
            return raw
        if raw is None:
            return cls.UNKNOWN
        text = str(raw).strip()
        for level in cls:
            if text == level.value or text == level.label_ar:
                return level
        return cls.UNKNOWN


# --- III. Records ---
@dataclass(frozen=True)
class PilotOutcomeRecord:
    contacted: bool
    contact_date: Optional[date] = None
    service_delivered: Optional[bool] = None
    non_delivery_reason: Optional[str] = None
    satisfaction_score: Optional[int] = None
    provider_satisfaction_score: Optional[int] = None
    risk_classification: RiskClassification = RiskClassification.UNKNOWN


@dataclass(frozen=True)
class PatientClinicalRecord:
    """Read-only snapshot of one beneficiary, as consumed by every scoring function."""
    id: str
    name: str = ""
    name_en: Optional[str] = None
    age: Optional[int] = None
    gender: Gender = Gender.UNKNOWN

    has_diabetes: bool = False
    has_hypertension: bool = False
    has_dyslipidemia: bool = False
    has_ascvd: bool = False
    has_ckd: bool = False
    has_heart_failure: bool = False

    hba1c: Optional[float] = None
    ldl: Optional[float] = None
    systolic_bp: Optional[float] = None
    diastolic_bp: Optional[float] = None
    bmi: Optional[float] = None
    fasting_blood_glucose: Optional[float] = None

    visit_count: int = 0
    dm_medications_count: int = 0
    htn_medications_count: int = 0
    dlp_medications_count: int = 0
    registration_status: RegistrationStatus = RegistrationStatus.NONE

    dm_prediction_index: Override[int] = COMPUTE
    htn_prediction_index: Override[int] = COMPUTE
    ldl_prediction_index: Override[int] = COMPUTE
    priority_level: Override[PriorityLevel] = COMPUTE
    priority_reason: Override[str] = COMPUTE
    suggested_action: Override[str] = COMPUTE
    prediction_confidence: Override[int] = COMPUTE

    outcome: Optional[PilotOutcomeRecord] = None

    @property
    def bp_reading(self) -> Optional[str]:
        """Last BP as the "sys/dia" string used by the screening sheets."""
        if self.systolic_bp is None or self.diastolic_bp is None:
            return None
        return f"{_format_number(self.systolic_bp)}/{_format_number(self.diastolic_bp)}"

    @property
    def chronic_condition_count(self) -> int:
        return sum([self.has_diabetes, self.has_hypertension, self.has_dyslipidemia])


@dataclass(frozen=True)
class PredictionResult:
    dm_prediction_index: int
    htn_prediction_index: int
    ldl_prediction_index: int
    overall_prediction_index: int
    priority_level: PriorityLevel
    priority_reason: str
    suggested_action: str
    confidence: int
    risk_factors: List[str] = field(default_factory=list)


# --- IV. Formatting Helpers ---
def _format_number(value: float) -> str:
    """Render numbers the way the screening sheets display them (12, not 12.0)."""
    if isinstance(value, float) and value.is_integer():
        return str(int(value))
    return str(value)


def round_half_up(value: float) -> int:
    return int(math.floor(value + 0.5))


# --- V. Normalisation from raw mappings ---
_LAB_FIELDS = ['hba1c', 'ldl', 'systolic_bp', 'diastolic_bp', 'bmi', 'fasting_blood_glucose']
_COUNT_FIELDS = ['visit_count', 'dm_medications_count', 'htn_medications_count', 'dlp_medications_count']
_FLAG_FIELDS = ['has_diabetes', 'has_hypertension', 'has_dyslipidemia', 'has_ascvd', 'has_ckd', 'has_heart_failure']
_FIELD_ALIASES = {
    'has_dm': 'has_diabetes',
    'has_htn': 'has_hypertension',
    'has_dlp': 'has_dyslipidemia',
    'fbg': 'fasting_blood_glucose',
    'fasting_glucose': 'fasting_blood_glucose',
    'visits': 'visit_count',
}
_TRUE_STRINGS = {'1', 'true', 'yes', 'y', 'نعم'}
_NA_STRINGS = {'', 'nan', 'none', 'n/a', '#n/a', 'nat', '<na>', 'null'}


def _is_missing(value: Any) -> bool:
    if value is None:
        return True
    if isinstance(value, str):
        return value.strip().lower() in _NA_STRINGS
    try:
        # NaN and NaT are the only values unequal to themselves
        return bool(value != value)
    except (TypeError, ValueError):
        return False


def _to_float(value: Any) -> Optional[float]:
    if _is_missing(value):
        return None
    try:
        result = float(value)
    except (TypeError, ValueError):
        return None
    if math.isnan(result) or math.isinf(result):
        return None
    return result


def _to_flag(value: Any) -> bool:
    if _is_missing(value):
        return False
    if isinstance(value, str):
        return value.strip().lower() in _TRUE_STRINGS
    return bool(value)


def _to_override(value: Any, convert: Callable[[Any], Any]) -> Override:
    if isinstance(value, (Provided, _Compute)):
        return value
    if _is_missing(value):
        return COMPUTE
    converted = convert(value)
    if converted is None:
        return COMPUTE
    return Provided(converted)


def _to_index(value: Any) -> Optional[int]:
    number = _to_float(value)
    if number is None:
        return None
    return int(min(max(round_half_up(number), 0), 100))


def record_from_mapping(raw: Mapping[str, Any], source_context: str = "RecordNormaliser") -> PatientClinicalRecord:
    """
    Build a PatientClinicalRecord from a flat mapping (CSV row, API payload).

    Out-of-range policy: negative ages and counts are clamped to 0 and negative
    lab readings are dropped to unknown. Each correction is logged.
    """
    data = {_FIELD_ALIASES.get(k, k): v for k, v in raw.items()}
    patient_id = str(data.get('id', data.get('patient_id', ''))).strip()

    age_val = _to_float(data.get('age'))
    age: Optional[int] = None
    if age_val is not None:
        if age_val < 0:
            logger.warning(f"({source_context}) Patient '{patient_id}': negative age {age_val} clamped to 0.")
            age_val = 0.0
        age = int(age_val)

    counts = {}
    for col in _COUNT_FIELDS:
        num = _to_float(data.get(col))
        if num is None:
            counts[col] = 0
            continue
        if num < 0:
            logger.warning(f"({source_context}) Patient '{patient_id}': negative {col} {num} clamped to 0.")
            num = 0.0
        counts[col] = int(num)

    labs = {}
    for col in _LAB_FIELDS:
        num = _to_float(data.get(col))
        if num is not None and num < 0:
            logger.warning(f"({source_context}) Patient '{patient_id}': negative {col} {num} treated as unknown.")
            num = None
        labs[col] = num

    raw_priority = data.get('priority_level')
    priority_override = _to_override(raw_priority, PriorityLevel.parse)
    if priority_override is COMPUTE and not isinstance(raw_priority, _Compute) and not _is_missing(raw_priority):
        logger.warning(f"({source_context}) Patient '{patient_id}': unrecognised priority level "
                       f"'{raw_priority}', computing instead.")

    outcome = data.get('outcome')
    if not isinstance(outcome, PilotOutcomeRecord):
        outcome = _outcome_from_mapping(data)

    name_en = data.get('name_en')
    return PatientClinicalRecord(
        id=patient_id,
        name='' if _is_missing(data.get('name')) else str(data.get('name')),
        name_en=None if _is_missing(name_en) else str(name_en),
        age=age,
        gender=Gender.parse(data.get('gender')),
        **{col: _to_flag(data.get(col)) for col in _FLAG_FIELDS},
        **labs,
        **counts,
        registration_status=RegistrationStatus.parse(data.get('registration_status')),
        dm_prediction_index=_to_override(data.get('dm_prediction_index'), _to_index),
        htn_prediction_index=_to_override(data.get('htn_prediction_index'), _to_index),
        ldl_prediction_index=_to_override(data.get('ldl_prediction_index'), _to_index),
        priority_level=priority_override,
        priority_reason=_to_override(data.get('priority_reason'), str),
        suggested_action=_to_override(data.get('suggested_action'), str),
        prediction_confidence=_to_override(data.get('prediction_confidence'), _to_index),
        outcome=outcome,
    )


def _outcome_from_mapping(data: Mapping[str, Any]) -> Optional[PilotOutcomeRecord]:
    """Real outcome data exists only when `contacted` is recorded."""
    contacted = data.get('contacted')
    if _is_missing(contacted):
        return None
    contact_date = data.get('contact_date')
    if _is_missing(contact_date):
        contact_date = None
    elif not isinstance(contact_date, date):
        try:
            contact_date = date.fromisoformat(str(contact_date)[:10])
        except ValueError:
            contact_date = None
    elif hasattr(contact_date, 'date'):
        contact_date = contact_date.date()
    delivered = data.get('service_delivered')
    reason = data.get('non_delivery_reason')
    sat = _to_float(data.get('satisfaction_score'))
    prov_sat = _to_float(data.get('provider_satisfaction_score'))
    return PilotOutcomeRecord(
        contacted=_to_flag(contacted),
        contact_date=contact_date,
        service_delivered=None if _is_missing(delivered) else _to_flag(delivered),
        non_delivery_reason=None if _is_missing(reason) else str(reason),
        satisfaction_score=None if sat is None else int(sat),
        provider_satisfaction_score=None if prov_sat is None else int(prov_sat),
        risk_classification=RiskClassification.parse(data.get('risk_classification')),
    )
