# wiqaya_project_root/config/app_config.py
# Configuration for the "Wiqaya" preventive care & chronic disease dashboard core.

import os
import logging
from datetime import datetime

# --- Configure Logging ---
LOG_LEVEL = os.getenv("WIQAYA_LOG_LEVEL", "INFO").upper()
LOG_FORMAT = '%(asctime)s - %(name)s - %(levelname)s - [%(module)s.%(funcName)s:%(lineno)d] - %(message)s'
LOG_DATE_FORMAT = '%Y-%m-%d %H:%M:%S'
logging.basicConfig(level=LOG_LEVEL, format=LOG_FORMAT, datefmt=LOG_DATE_FORMAT)
logger = logging.getLogger(__name__)

# --- Path Validation ---
def validate_path(path, description):
    """Validate file or directory path, log debug message if missing."""
    if not os.path.exists(path):
        logger.debug(f"{description} not found: {path}")
    return path

def _env_flag(name, default):
    value = os.getenv(name)
    if value is None:
        return default
    return value.strip().lower() in ("1", "true", "yes", "on")

# --- I. Core System & Directory Configuration ---
BASE_APP_ROOT_DIR = os.path.abspath(os.path.join(os.path.dirname(__file__), ".."))
DATA_SOURCES_DIR = validate_path(os.path.join(BASE_APP_ROOT_DIR, "data_sources"), "Data sources directory")

# Data source paths
PATIENT_RECORDS_CSV = os.getenv("PATIENT_RECORDS_CSV", os.path.join(DATA_SOURCES_DIR, "patient_records.csv"))

APP_NAME = "Wiqaya Preventive Care Dashboard"
APP_VERSION = "1.0.0"
ORGANIZATION_NAME = "Preventive Care & Chronic Disease Program"
APP_FOOTER_TEXT = f"© {datetime.now().year} {ORGANIZATION_NAME}."

CACHE_TTL_SECONDS = 3600

# Seeded (simulated) outcome data vs. live outcome data only.
# Read once here; the statistics aggregator receives it by injection.
SIMULATE_PILOT_DATA = _env_flag("WIQAYA_SIMULATE_PILOT_DATA", True)

# --- II. Prediction Index Scoring Tables ---
# Diabetes index (max 100)
DM_VISIT_POINTS_PER_VISIT = 5
DM_VISIT_POINTS_MAX = 30
DM_MED_POINTS_PER_MED = 10
DM_MED_POINTS_MAX = 20
DM_REGISTRATION_POINTS = {
    "registered_eligible": 20,
    "registered": 15,
    "two_visits": 10,
    "one_visit": 5,
    "none": 0,
}
# (upper bound exclusive, points); values at or above the last bound score 0
DM_HBA1C_POINTS = [(7.0, 30), (8.0, 20), (9.0, 10)]
DM_HBA1C_UNKNOWN_POINTS = 15

# Hypertension index (max 100)
HTN_VISIT_POINTS_PER_VISIT = 5
HTN_VISIT_POINTS_MAX = 25
HTN_MED_POINTS_PER_MED = 10
HTN_MED_POINTS_MAX = 25
# (systolic bound, diastolic bound, points); both readings must be under the bounds
HTN_BP_STAGE_POINTS = [(120, 80, 50), (130, 80, 40), (140, 90, 30), (160, 100, 15)]
HTN_BP_UNKNOWN_POINTS = 25

# Dyslipidemia index (max 100)
DLP_MED_POINTS_PER_MED = 15
DLP_MED_POINTS_MAX = 30
DLP_LDL_POINTS = [(100, 50), (130, 40), (160, 25), (190, 10)]
DLP_LDL_UNKNOWN_POINTS = 25
DLP_BMI_POINTS = [(25.0, 20), (30.0, 10)]
DLP_BMI_UNKNOWN_POINTS = 10

# --- III. Priority Cascade Thresholds ---
PRIORITY_CONSULTANT_HBA1C = 12.0
PRIORITY_CONSULTANT_LDL = 190
PRIORITY_CONSULTANT_SYSTOLIC = 180
PRIORITY_HIGH_HBA1C = 9.0
PRIORITY_HIGH_LDL = 160
PRIORITY_HIGH_SYSTOLIC = 160

PRIORITY_LABELS_AR = {
    "consultant_plus_educator": "استشاري + مثقف صحي",
    "high_priority": "أولوية عالية",
    "routine": "روتيني",
}
PRIORITY_ACTIONS_AR = {
    "consultant_hba1c": "تحويل فوري للاستشاري في نفس المركز + إشراك المثقف الصحي",
    "consultant_ldl": "تحويل فوري للاستشاري في نفس المركز + إشراك المثقف الصحي",
    "consultant_bp": "تحويل فوري للاستشاري + مراقبة الضغط المستمرة",
    "high_hba1c": "متابعة مكثفة كل 3 أشهر + مراجعة الخطة العلاجية",
    "high_ldl": "متابعة مكثفة + تعديل أدوية الدهون",
    "high_bp": "متابعة أسبوعية للضغط + تعديل الأدوية",
    "routine": "متابعة روتينية حسب الجدول المعتاد",
}
PRIORITY_ROUTINE_REASON_AR = "مؤشرات طبيعية"

# --- IV. Risk Factor Thresholds ---
RISK_FACTOR_HBA1C = 7.0
RISK_FACTOR_LDL = 130
RISK_FACTOR_SYSTOLIC = 140
RISK_FACTOR_BMI = 30.0
RISK_FACTOR_AGE = 65
RISK_FACTOR_MIN_CHRONIC_CONDITIONS = 3

# --- V. Prediction Confidence Weights ---
CONFIDENCE_WEIGHTS = {
    "hba1c": 20,
    "ldl": 15,
    "blood_pressure": 15,
    "bmi": 10,
    "visits": 20,
    "medications": 20,
}

# --- VI. Pilot Program Configuration ---
PILOT_CONTACTED_RATE = 0.61
PILOT_SERVICE_DELIVERED_RATE = 0.81
PILOT_PREDICTION_ACCURACY_PCT = 31
PILOT_CONTACT_WINDOW_DAYS = 90
PILOT_SATISFACTION_MIN = 3
PILOT_SATISFACTION_SPAN = 2

NON_DELIVERY_REASONS = [
    "لا توجد حاجة طبية حالياً",
    "رفض المستفيد",
    "عدم اكتمال المتطلبات",
    "تعذر التنسيق",
    "أسباب تشغيلية أخرى",
]
NON_CONTACT_REASONS = [
    "لم يرد على الاتصال",
    "رقم الهاتف غير صحيح",
    "خارج نطاق التغطية",
    "الرقم مغلق",
    "أسباب أخرى",
]
# Estimated share of each non-contact reason (no per-patient reason is recorded)
NON_CONTACT_REASON_SHARES = [0.35, 0.25, 0.18, 0.12, 0.10]

# --- VII. Lab Risk Classification ---
RISK_FBG_HIGH = 126
RISK_FBG_MODERATE = 100
RISK_HBA1C_HIGH = 6.5
RISK_HBA1C_MODERATE = 5.7
RISK_LDL_HIGH = 160
RISK_LDL_MODERATE = 130
RISK_BP_HIGH = (140, 90)
RISK_BP_MODERATE = (130, 80)
RISK_SCORE_AT_RISK = 4
RISK_SCORE_NEEDS_MONITORING = 2

RISK_LABELS_AR = {
    "unknown": "غير معروف",
    "normal": "طبيعي",
    "needs_monitoring": "يحتاج مراقبة",
    "at_risk": "خطر",
}

# Screening eligibility ages
SCREENING_BP_MIN_AGE = 18
SCREENING_FBG_MIN_AGE = 35
SCREENING_LIPIDS_MIN_AGE_MALE = 35
SCREENING_LIPIDS_MIN_AGE_FEMALE = 45

# --- VIII. Clinical Target Tables ---
TARGET_NEAR_TOLERANCE_PCT = 10
TARGET_BP_NEAR_SYSTOLIC_MARGIN = 10
TARGET_BP_NEAR_DIASTOLIC_MARGIN = 5

TARGET_STATUS_LABELS_AR = {
    "no_reading": "لا توجد قراءة",
    "invalid_reading": "قراءة غير صالحة",
    "at_target": "ضمن الهدف ✓",
    "near_target": "قريب من الهدف",
    "needs_improvement": "يحتاج تحسين",
}

# --- IX. Record Normalisation ---
# Free-text registration keywords, checked as substrings of the lower-cased status.
REGISTRATION_KEYWORDS = {
    "registered": ["مسجل", "registered"],
    "eligible": ["مؤهل", "eligible"],
    "two_visits": ["زيارتين", "two visits", "2 visits"],
    "one_visit": ["زيارة", "one visit", "1 visit"],
}
GENDER_KEYWORDS = {
    "male": ["male", "m", "ذكر"],
    "female": ["female", "f", "أنثى", "انثى"],
}

# --- End of Configuration ---
