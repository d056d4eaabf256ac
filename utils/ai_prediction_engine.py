# wiqaya_project_root/utils/ai_prediction_engine.py
# Rule-based "AI prediction" scoring for chronic disease management:
# per-disease prediction indices, priority triage, risk factors and confidence.

import pandas as pd
import numpy as np
from typing import Callable, Iterable, List, Optional, Tuple
import logging
from config import app_config
from .patient_record import (
    PatientClinicalRecord, PredictionResult, PriorityLevel, Provided,
    RegistrationStatus, _format_number, record_from_mapping, resolve, round_half_up
)

logger = logging.getLogger(__name__)

# Fallback thresholds
CONSULTANT_HBA1C = getattr(app_config, 'PRIORITY_CONSULTANT_HBA1C', 12.0)
CONSULTANT_LDL = getattr(app_config, 'PRIORITY_CONSULTANT_LDL', 190)
CONSULTANT_SYSTOLIC = getattr(app_config, 'PRIORITY_CONSULTANT_SYSTOLIC', 180)
HIGH_HBA1C = getattr(app_config, 'PRIORITY_HIGH_HBA1C', 9.0)
HIGH_LDL = getattr(app_config, 'PRIORITY_HIGH_LDL', 160)
HIGH_SYSTOLIC = getattr(app_config, 'PRIORITY_HIGH_SYSTOLIC', 160)
RISK_FACTOR_HBA1C = getattr(app_config, 'RISK_FACTOR_HBA1C', 7.0)
RISK_FACTOR_LDL = getattr(app_config, 'RISK_FACTOR_LDL', 130)
RISK_FACTOR_SYSTOLIC = getattr(app_config, 'RISK_FACTOR_SYSTOLIC', 140)
RISK_FACTOR_BMI = getattr(app_config, 'RISK_FACTOR_BMI', 30.0)
RISK_FACTOR_AGE = getattr(app_config, 'RISK_FACTOR_AGE', 65)
RISK_FACTOR_MIN_CHRONIC = getattr(app_config, 'RISK_FACTOR_MIN_CHRONIC_CONDITIONS', 3)
CONFIDENCE_WEIGHTS = getattr(app_config, 'CONFIDENCE_WEIGHTS', {
    "hba1c": 20, "ldl": 15, "blood_pressure": 15, "bmi": 10, "visits": 20, "medications": 20
})

PREDICTION_COLUMNS = [
    'dm_prediction_index', 'htn_prediction_index', 'ldl_prediction_index',
    'overall_prediction_index', 'priority_level', 'priority_level_ar',
    'priority_reason', 'suggested_action', 'prediction_confidence', 'risk_factors'
]


def _clip_index(score: float) -> int:
    return int(np.clip(round_half_up(score), 0, 100))


def _banded_points(value: Optional[float], bands: List[Tuple[float, int]], unknown_points: int) -> int:
    """Points of the first band whose (exclusive) upper bound exceeds value; 0 past the last band."""
    if value is None:
        return unknown_points
    for upper_bound, points in bands:
        if value < upper_bound:
            return points
    return 0


class ChronicDiseasePredictionModel:
    """
    Simulates the per-disease prediction indices (0-100) shown on the AI tab.
    Higher means better expected control: engagement (visits, registration,
    medication) plus how close the latest lab value is to control.
    """
    def __init__(self):
        self.dm_params = {
            'visit_points': getattr(app_config, 'DM_VISIT_POINTS_PER_VISIT', 5),
            'visit_max': getattr(app_config, 'DM_VISIT_POINTS_MAX', 30),
            'med_points': getattr(app_config, 'DM_MED_POINTS_PER_MED', 10),
            'med_max': getattr(app_config, 'DM_MED_POINTS_MAX', 20),
            'registration_points': getattr(app_config, 'DM_REGISTRATION_POINTS', {}),
            'hba1c_bands': getattr(app_config, 'DM_HBA1C_POINTS', [(7.0, 30), (8.0, 20), (9.0, 10)]),
            'hba1c_unknown': getattr(app_config, 'DM_HBA1C_UNKNOWN_POINTS', 15),
        }
        self.htn_params = {
            'visit_points': getattr(app_config, 'HTN_VISIT_POINTS_PER_VISIT', 5),
            'visit_max': getattr(app_config, 'HTN_VISIT_POINTS_MAX', 25),
            'med_points': getattr(app_config, 'HTN_MED_POINTS_PER_MED', 10),
            'med_max': getattr(app_config, 'HTN_MED_POINTS_MAX', 25),
            'bp_stages': getattr(app_config, 'HTN_BP_STAGE_POINTS', [(120, 80, 50), (130, 80, 40), (140, 90, 30), (160, 100, 15)]),
            'bp_unknown': getattr(app_config, 'HTN_BP_UNKNOWN_POINTS', 25),
        }
        self.dlp_params = {
            'med_points': getattr(app_config, 'DLP_MED_POINTS_PER_MED', 15),
            'med_max': getattr(app_config, 'DLP_MED_POINTS_MAX', 30),
            'ldl_bands': getattr(app_config, 'DLP_LDL_POINTS', [(100, 50), (130, 40), (160, 25), (190, 10)]),
            'ldl_unknown': getattr(app_config, 'DLP_LDL_UNKNOWN_POINTS', 25),
            'bmi_bands': getattr(app_config, 'DLP_BMI_POINTS', [(25.0, 20), (30.0, 10)]),
            'bmi_unknown': getattr(app_config, 'DLP_BMI_UNKNOWN_POINTS', 10),
        }
        logger.debug("ChronicDiseasePredictionModel initialized.")

    @staticmethod
    def _capped(count: int, per_unit: int, cap: int) -> int:
        return min(max(count, 0) * per_unit, cap)

    def _registration_points(self, status: RegistrationStatus) -> int:
        return int(self.dm_params['registration_points'].get(status.value, 0))

    def _bp_points(self, systolic: Optional[float], diastolic: Optional[float]) -> int:
        if systolic is None or diastolic is None:
            return self.htn_params['bp_unknown']
        for sys_bound, dia_bound, points in self.htn_params['bp_stages']:
            if systolic < sys_bound and diastolic < dia_bound:
                return points
        # Hypertensive crisis
        return 0

    def calculate_dm_index(self, record: PatientClinicalRecord) -> int:
        def _compute() -> int:
            if not record.has_diabetes:
                return 0
            p = self.dm_params
            score = self._capped(record.visit_count, p['visit_points'], p['visit_max'])
            score += self._registration_points(record.registration_status)
            score += self._capped(record.dm_medications_count, p['med_points'], p['med_max'])
            score += _banded_points(record.hba1c, p['hba1c_bands'], p['hba1c_unknown'])
            return _clip_index(score)
        return resolve(record.dm_prediction_index, _compute)

    def calculate_htn_index(self, record: PatientClinicalRecord) -> int:
        def _compute() -> int:
            if not record.has_hypertension:
                return 0
            p = self.htn_params
            score = self._capped(record.visit_count, p['visit_points'], p['visit_max'])
            score += self._capped(record.htn_medications_count, p['med_points'], p['med_max'])
            score += self._bp_points(record.systolic_bp, record.diastolic_bp)
            return _clip_index(score)
        return resolve(record.htn_prediction_index, _compute)

    def calculate_ldl_index(self, record: PatientClinicalRecord) -> int:
        def _compute() -> int:
            if not record.has_dyslipidemia:
                return 0
            p = self.dlp_params
            score = self._capped(record.dlp_medications_count, p['med_points'], p['med_max'])
            score += _banded_points(record.ldl, p['ldl_bands'], p['ldl_unknown'])
            score += _banded_points(record.bmi, p['bmi_bands'], p['bmi_unknown'])
            return _clip_index(score)
        return resolve(record.ldl_prediction_index, _compute)

    @staticmethod
    def calculate_overall_index(record: PatientClinicalRecord, dm_index: int, htn_index: int, ldl_index: int) -> int:
        """Mean of the non-zero indices of the diseases the patient has; 0 with none."""
        indices = [
            idx for has_disease, idx in (
                (record.has_diabetes, dm_index),
                (record.has_hypertension, htn_index),
                (record.has_dyslipidemia, ldl_index),
            ) if has_disease and idx > 0
        ]
        if not indices:
            return 0
        return _clip_index(sum(indices) / len(indices))


class PriorityClassifier:
    """
    Ordered clinical-threshold cascade. First matching clause wins; within a
    tier the clauses are checked HbA1c, LDL, then systolic BP.
    """
    def __init__(self):
        actions = getattr(app_config, 'PRIORITY_ACTIONS_AR', {})
        self.cascade: List[Tuple[PriorityLevel, Callable[[PatientClinicalRecord], bool], Callable[[PatientClinicalRecord], str], str]] = [
            (PriorityLevel.CONSULTANT_PLUS_EDUCATOR, lambda r: _at_least(r.hba1c, CONSULTANT_HBA1C), _hba1c_reason, actions.get('consultant_hba1c', '')),
            (PriorityLevel.CONSULTANT_PLUS_EDUCATOR, lambda r: _at_least(r.ldl, CONSULTANT_LDL), _ldl_reason, actions.get('consultant_ldl', '')),
            (PriorityLevel.CONSULTANT_PLUS_EDUCATOR, lambda r: _at_least(r.systolic_bp, CONSULTANT_SYSTOLIC), _bp_reason, actions.get('consultant_bp', '')),
            (PriorityLevel.HIGH_PRIORITY, lambda r: _at_least(r.hba1c, HIGH_HBA1C), _hba1c_reason, actions.get('high_hba1c', '')),
            (PriorityLevel.HIGH_PRIORITY, lambda r: _at_least(r.ldl, HIGH_LDL), _ldl_reason, actions.get('high_ldl', '')),
            (PriorityLevel.HIGH_PRIORITY, lambda r: _at_least(r.systolic_bp, HIGH_SYSTOLIC), _bp_reason, actions.get('high_bp', '')),
        ]
        self.routine_reason = getattr(app_config, 'PRIORITY_ROUTINE_REASON_AR', 'مؤشرات طبيعية')
        self.routine_action = actions.get('routine', '')
        logger.debug("PriorityClassifier initialized.")

    def determine_priority_level(self, record: PatientClinicalRecord) -> Tuple[PriorityLevel, str, str]:
        if isinstance(record.priority_level, Provided):
            # Imported triage is authoritative; reason/action pass through as given
            return (
                record.priority_level.value,
                resolve(record.priority_reason, lambda: ''),
                resolve(record.suggested_action, lambda: ''),
            )
        for level, clause, reason_fn, action in self.cascade:
            if clause(record):
                return level, reason_fn(record), action
        return PriorityLevel.ROUTINE, self.routine_reason, self.routine_action


def _at_least(value: Optional[float], threshold: float) -> bool:
    return value is not None and value >= threshold


def _hba1c_reason(record: PatientClinicalRecord) -> str:
    return f"HbA1c={_format_number(record.hba1c)}%"


def _ldl_reason(record: PatientClinicalRecord) -> str:
    return f"LDL={round_half_up(record.ldl)}"


def _bp_reason(record: PatientClinicalRecord) -> str:
    diastolic = _format_number(record.diastolic_bp) if record.diastolic_bp else '-'
    return f"BP={_format_number(record.systolic_bp)}/{diastolic}"


def identify_risk_factors(record: PatientClinicalRecord) -> List[str]:
    risks: List[str] = []
    if _at_least(record.hba1c, RISK_FACTOR_HBA1C):
        risks.append(f"ارتفاع السكر التراكمي ({_format_number(record.hba1c)}%)")
    if _at_least(record.ldl, RISK_FACTOR_LDL):
        risks.append(f"ارتفاع الكولسترول الضار ({round_half_up(record.ldl)})")
    if _at_least(record.systolic_bp, RISK_FACTOR_SYSTOLIC):
        risks.append(f"ارتفاع ضغط الدم ({_format_number(record.systolic_bp)})")
    if _at_least(record.bmi, RISK_FACTOR_BMI):
        risks.append(f"سمنة (BMI={record.bmi:.1f})")
    if _at_least(record.age, RISK_FACTOR_AGE):
        risks.append(f"عمر متقدم ({record.age} سنة)")
    if record.chronic_condition_count >= RISK_FACTOR_MIN_CHRONIC:
        risks.append('أمراض مزمنة متعددة')
    return risks


def calculate_confidence(record: PatientClinicalRecord) -> int:
    """Weighted data-completeness percentage."""
    def _compute() -> int:
        total_meds = record.dm_medications_count + record.htn_medications_count + record.dlp_medications_count
        available = {
            'hba1c': record.hba1c is not None,
            'ldl': record.ldl is not None,
            'blood_pressure': record.systolic_bp is not None,
            'bmi': record.bmi is not None,
            'visits': record.visit_count > 0,
            'medications': total_meds > 0,
        }
        max_points = sum(CONFIDENCE_WEIGHTS.values())
        if max_points <= 0:
            return 0
        data_points = sum(w for key, w in CONFIDENCE_WEIGHTS.items() if available.get(key))
        return _clip_index(data_points / max_points * 100)
    return resolve(record.prediction_confidence, _compute)


_DEFAULT_MODEL = ChronicDiseasePredictionModel()
_DEFAULT_CLASSIFIER = PriorityClassifier()


def calculate_dm_prediction_index(record: PatientClinicalRecord) -> int:
    return _DEFAULT_MODEL.calculate_dm_index(record)


def calculate_htn_prediction_index(record: PatientClinicalRecord) -> int:
    return _DEFAULT_MODEL.calculate_htn_index(record)


def calculate_ldl_prediction_index(record: PatientClinicalRecord) -> int:
    return _DEFAULT_MODEL.calculate_ldl_index(record)


def determine_priority_level(record: PatientClinicalRecord) -> Tuple[PriorityLevel, str, str]:
    return _DEFAULT_CLASSIFIER.determine_priority_level(record)


def generate_prediction(record: PatientClinicalRecord) -> PredictionResult:
    """Complete prediction for one patient. Pure and deterministic."""
    dm_index = _DEFAULT_MODEL.calculate_dm_index(record)
    htn_index = _DEFAULT_MODEL.calculate_htn_index(record)
    ldl_index = _DEFAULT_MODEL.calculate_ldl_index(record)
    level, reason, action = _DEFAULT_CLASSIFIER.determine_priority_level(record)
    return PredictionResult(
        dm_prediction_index=dm_index,
        htn_prediction_index=htn_index,
        ldl_prediction_index=ldl_index,
        overall_prediction_index=ChronicDiseasePredictionModel.calculate_overall_index(record, dm_index, htn_index, ldl_index),
        priority_level=level,
        priority_reason=reason,
        suggested_action=action,
        confidence=calculate_confidence(record),
        risk_factors=identify_risk_factors(record),
    )


# --- Priority ordering ---
def priority_sort_key(prediction: PredictionResult) -> int:
    """Ascending sort puts the most urgent tier first."""
    return prediction.priority_level.rank


def sort_by_priority(records: Iterable[PatientClinicalRecord]) -> List[Tuple[PatientClinicalRecord, PredictionResult]]:
    scored = [(record, generate_prediction(record)) for record in records]
    # sorted() is stable: equal tiers keep input order
    return sorted(scored, key=lambda pair: priority_sort_key(pair[1]))


def top_priority_patients(records: Iterable[PatientClinicalRecord], limit: int = 10) -> List[Tuple[PatientClinicalRecord, PredictionResult]]:
    """Non-routine patients, most urgent first, for the dashboard priority table."""
    ranked = [pair for pair in sort_by_priority(records) if pair[1].priority_level is not PriorityLevel.ROUTINE]
    return ranked[:limit]


def apply_prediction_models(
    patients_df: pd.DataFrame,
    source_context: str = "PredictionOrchestrator"
) -> pd.DataFrame:
    """Score every row of a patients DataFrame, adding the prediction columns."""
    logger.info(f"({source_context}) Applying prediction models to patient data (rows: {len(patients_df) if patients_df is not None else 0}).")
    if not isinstance(patients_df, pd.DataFrame):
        logger.error(f"({source_context}) Input patients_df is not a DataFrame.")
        return pd.DataFrame(columns=PREDICTION_COLUMNS)
    if patients_df.empty:
        logger.warning(f"({source_context}) Input patients_df is empty.")
        base_cols = patients_df.columns.tolist()
        return pd.DataFrame(columns=base_cols + [c for c in PREDICTION_COLUMNS if c not in base_cols])
    id_col = 'id' if 'id' in patients_df.columns else 'patient_id' if 'patient_id' in patients_df.columns else None
    if id_col is None:
        logger.warning(f"({source_context}) No 'id' or 'patient_id' column; records will have empty ids.")

    rows = []
    for raw in patients_df.to_dict(orient='records'):
        prediction = generate_prediction(record_from_mapping(raw, source_context=source_context))
        rows.append({
            'dm_prediction_index': prediction.dm_prediction_index,
            'htn_prediction_index': prediction.htn_prediction_index,
            'ldl_prediction_index': prediction.ldl_prediction_index,
            'overall_prediction_index': prediction.overall_prediction_index,
            'priority_level': prediction.priority_level.value,
            'priority_level_ar': prediction.priority_level.label_ar,
            'priority_reason': prediction.priority_reason,
            'suggested_action': prediction.suggested_action,
            'prediction_confidence': prediction.confidence,
            'risk_factors': prediction.risk_factors,
        })
    df_enriched = patients_df.drop(columns=[c for c in PREDICTION_COLUMNS if c in patients_df.columns]).copy()
    # Positional assignment; the input index may carry duplicate labels
    for col in PREDICTION_COLUMNS:
        values = [row[col] for row in rows]
        if col == 'risk_factors':
            cells = np.empty(len(values), dtype=object)
            for i, factors in enumerate(values):
                cells[i] = factors
            values = cells
        df_enriched[col] = values
    if len(df_enriched) < 100:
        logger.debug(f"({source_context}) Overall indices: {df_enriched['overall_prediction_index'].head(2).tolist()}")
    logger.info(f"({source_context}) Prediction models applied. Enriched shape: {df_enriched.shape}")
    return df_enriched
