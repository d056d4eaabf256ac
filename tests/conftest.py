# wiqaya_project_root/tests/conftest.py
# Pytest fixtures for testing the "Wiqaya" preventive care dashboard core.

import pytest
import pandas as pd
import numpy as np
from datetime import date
import sys
import os

# --- Path Setup for Imports ---
# Add the project root (parent of 'tests', contains 'config' and 'utils') to sys.path
_current_conftest_dir = os.path.dirname(os.path.abspath(__file__))
_project_root_dir = os.path.abspath(os.path.join(_current_conftest_dir, os.pardir))

if _project_root_dir not in sys.path:
    sys.path.insert(0, _project_root_dir)

# --- Critical Project Module Imports ---
try:
    from config import app_config
    from utils.patient_record import PatientClinicalRecord, RegistrationStatus, Gender
    from utils.core_data_processing import records_from_dataframe
except ImportError as e:
    print(f"FATAL ERROR in conftest.py: Could not import core project modules. Tests will not run correctly.")
    print(f"PYTHONPATH currently is: {sys.path}")
    print(f"Error details: {e}")
    raise


REFERENCE_DATE = date(2024, 6, 30)


@pytest.fixture(scope="session")
def reference_date() -> date:
    return REFERENCE_DATE


# --- Fixture for Sample Patient DataFrame ---
@pytest.fixture(scope="session")
def sample_patients_df() -> pd.DataFrame:
    """
    Forty synthetic beneficiaries with a spread of conditions, labs (some missing),
    engagement history and registration text, as loaded from a screening sheet.
    """
    rng = np.random.RandomState(42)
    num_records = 40

    def _with_gaps(values, gap_every):
        return [np.nan if i % gap_every == 0 else v for i, v in enumerate(values)]

    raw_data = {
        'id': [f'WQ-{i:04d}' for i in range(1, num_records + 1)],
        'name': [f'مستفيد {i}' for i in range(1, num_records + 1)],
        'age': rng.randint(18, 90, num_records).tolist(),
        'gender': rng.choice(['ذكر', 'أنثى', 'Male', 'Female'], num_records).tolist(),
        'has_diabetes': rng.choice([True, False], num_records, p=[0.6, 0.4]).tolist(),
        'has_hypertension': rng.choice([True, False], num_records, p=[0.5, 0.5]).tolist(),
        'has_dyslipidemia': rng.choice([True, False], num_records, p=[0.4, 0.6]).tolist(),
        'hba1c': _with_gaps(rng.uniform(5.0, 13.5, num_records).round(1).tolist(), 7),
        'ldl': _with_gaps(rng.uniform(70, 220, num_records).round(0).tolist(), 6),
        'systolic_bp': _with_gaps(rng.randint(105, 195, num_records).tolist(), 9),
        'diastolic_bp': rng.randint(65, 110, num_records).tolist(),
        'bmi': _with_gaps(rng.uniform(19, 38, num_records).round(1).tolist(), 5),
        'fasting_blood_glucose': _with_gaps(rng.uniform(80, 200, num_records).round(0).tolist(), 4),
        'visit_count': rng.randint(0, 8, num_records).tolist(),
        'dm_medications_count': rng.randint(0, 3, num_records).tolist(),
        'htn_medications_count': rng.randint(0, 3, num_records).tolist(),
        'dlp_medications_count': rng.randint(0, 3, num_records).tolist(),
        'registration_status': rng.choice(['مسجل ومؤهل', 'مسجل', 'زيارتين', 'زيارة واحدة', ''], num_records).tolist(),
    }
    return pd.DataFrame(raw_data)


@pytest.fixture(scope="session")
def sample_records(sample_patients_df):
    return records_from_dataframe(sample_patients_df, source_context="TestFixture")


@pytest.fixture
def healthy_record() -> PatientClinicalRecord:
    return PatientClinicalRecord(id='WQ-HEALTHY', name='سليم', age=30, gender=Gender.MALE)


@pytest.fixture
def diabetic_record() -> PatientClinicalRecord:
    """Diabetic with an elevated HbA1c, two visits and one medication."""
    return PatientClinicalRecord(
        id='WQ-DM-001', name='مريض سكري', age=55, gender=Gender.FEMALE,
        has_diabetes=True, hba1c=9.5, visit_count=2, dm_medications_count=1,
    )


@pytest.fixture
def multimorbid_record() -> PatientClinicalRecord:
    return PatientClinicalRecord(
        id='WQ-MM-001', name='متعدد الأمراض', age=72, gender=Gender.MALE,
        has_diabetes=True, has_hypertension=True, has_dyslipidemia=True,
        hba1c=7.4, ldl=145, systolic_bp=150, diastolic_bp=92, bmi=31.4,
        fasting_blood_glucose=140, visit_count=4,
        dm_medications_count=2, htn_medications_count=1, dlp_medications_count=1,
        registration_status=RegistrationStatus.REGISTERED_ELIGIBLE,
    )


@pytest.fixture
def empty_patients_df_schema() -> pd.DataFrame:
    cols = ['id', 'name', 'age', 'gender', 'has_diabetes', 'has_hypertension', 'has_dyslipidemia',
            'hba1c', 'ldl', 'systolic_bp', 'diastolic_bp', 'bmi', 'visit_count']
    return pd.DataFrame(columns=cols)
