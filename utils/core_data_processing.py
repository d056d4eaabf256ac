# wiqaya_project_root/utils/core_data_processing.py
# Patient data loading, cleaning, and DataFrame <-> record conversion for the Wiqaya dashboard core.

import streamlit as st
import pandas as pd
import numpy as np
import os
import logging
from config import app_config
from typing import Any, Iterable, List, Optional
from .patient_record import PatientClinicalRecord, record_from_mapping
from .ai_prediction_engine import PREDICTION_COLUMNS, generate_prediction

logger = logging.getLogger(__name__)

NUMERIC_COLS_DEFAULTS = {
    'age': np.nan, 'hba1c': np.nan, 'ldl': np.nan, 'systolic_bp': np.nan, 'diastolic_bp': np.nan,
    'bmi': np.nan, 'fasting_blood_glucose': np.nan,
    'visit_count': 0, 'dm_medications_count': 0, 'htn_medications_count': 0, 'dlp_medications_count': 0,
}
FLAG_COLS = ['has_diabetes', 'has_hypertension', 'has_dyslipidemia', 'has_ascvd', 'has_ckd', 'has_heart_failure']
STRING_COLS = ['id', 'name', 'gender', 'registration_status']


# --- I. Core Helper Functions ---
def _clean_column_names(df: pd.DataFrame) -> pd.DataFrame:
    if not isinstance(df, pd.DataFrame):
        logger.error(f"_clean_column_names expects a pandas DataFrame, got {type(df)}.")
        return pd.DataFrame()
    df.columns = df.columns.str.lower().str.replace('[^0-9a-zA-Z_]', '_', regex=True).str.replace('_+', '_', regex=True).str.strip('_')
    return df


def _convert_to_numeric(series: Any, default_value: Any = np.nan) -> pd.Series:
    if not isinstance(series, pd.Series):
        series = pd.Series(series, dtype=object)
    return pd.to_numeric(series, errors='coerce').fillna(default_value)


def _split_bp_column(df: pd.DataFrame) -> pd.DataFrame:
    """Screening sheets carry BP as one "sys/dia" text column."""
    if 'bp_last_visit' not in df.columns:
        return df
    parts = df['bp_last_visit'].astype(str).str.extract(r'^\s*(\d+)\s*/\s*(\d+)')
    for i, col in enumerate(['systolic_bp', 'diastolic_bp']):
        parsed = pd.to_numeric(parts[i], errors='coerce')
        df[col] = df[col].combine_first(parsed) if col in df.columns else parsed
    return df


# --- II. Data Loading ---
@st.cache_data(ttl=app_config.CACHE_TTL_SECONDS)
def load_patient_records(file_path: Optional[str] = None, source_context: str = "DataLoader") -> pd.DataFrame:
    actual_file_path = file_path or app_config.PATIENT_RECORDS_CSV
    logger.info(f"({source_context}) Loading patient records from: {actual_file_path}")
    if not os.path.exists(actual_file_path):
        logger.error(f"({source_context}) Patient records file not found: {actual_file_path}")
        return pd.DataFrame()
    try:
        df = pd.read_csv(actual_file_path, low_memory=False)
    except (OSError, UnicodeDecodeError, pd.errors.ParserError, pd.errors.EmptyDataError) as e:
        logger.error(f"({source_context}) Error reading patient records: {e}")
        return pd.DataFrame()
    df = _clean_column_names(df)
    logger.info(f"({source_context}) Loaded {len(df)} raw records. Columns: {df.columns.tolist()}")
    return clean_patient_dataframe(df, source_context=source_context)


def clean_patient_dataframe(df: pd.DataFrame, source_context: str = "DataCleaner") -> pd.DataFrame:
    """Coerce numeric, flag and text columns; unknown labs stay NaN, counts default to 0."""
    if not isinstance(df, pd.DataFrame) or df.empty:
        logger.warning(f"({source_context}) No patient data to clean.")
        return pd.DataFrame()
    df = df.copy()
    if 'id' not in df.columns and 'patient_id' in df.columns:
        df = df.rename(columns={'patient_id': 'id'})
    df = _split_bp_column(df)
    for col, default in NUMERIC_COLS_DEFAULTS.items():
        df[col] = _convert_to_numeric(df.get(col, pd.Series([default] * len(df), index=df.index)), default)
    for col in FLAG_COLS:
        if col not in df.columns:
            df[col] = False
        elif df[col].dtype != bool:
            df[col] = df[col].astype(str).str.strip().str.lower().isin(['1', '1.0', 'true', 'yes', 'y', 'نعم'])
    for col in STRING_COLS:
        df[col] = df.get(col, pd.Series([''] * len(df), index=df.index)).astype(str).str.strip().replace(['nan', 'None', 'N/A'], '')
    if (df['id'] == '').any():
        logger.warning(f"({source_context}) {(df['id'] == '').sum()} records without an id.")
    logger.info(f"({source_context}) Patient records processed: {df.shape}")
    return df


# --- III. Record Conversion ---
def records_from_dataframe(df: pd.DataFrame, source_context: str = "RecordBuilder") -> List[PatientClinicalRecord]:
    if not isinstance(df, pd.DataFrame) or df.empty:
        logger.warning(f"({source_context}) Empty or invalid DataFrame; no records built.")
        return []
    records = [record_from_mapping(row, source_context=source_context) for row in df.to_dict(orient='records')]
    logger.debug(f"({source_context}) Built {len(records)} patient records.")
    return records


def predictions_to_dataframe(records: Iterable[PatientClinicalRecord]) -> pd.DataFrame:
    """One row per patient: id, name and the prediction columns."""
    rows = []
    for record in records:
        prediction = generate_prediction(record)
        rows.append({
            'id': record.id,
            'name': record.name,
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
    return pd.DataFrame(rows, columns=['id', 'name'] + PREDICTION_COLUMNS)
