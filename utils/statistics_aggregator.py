# wiqaya_project_root/utils/statistics_aggregator.py
# Dashboard-level aggregates over a batch of patient records.

import logging
from dataclasses import dataclass, field
from datetime import date
from typing import Dict, Iterable, List, Optional

from config import app_config
from .ai_prediction_engine import generate_prediction
from .patient_record import PatientClinicalRecord, PilotOutcomeRecord, PredictionResult, PriorityLevel, round_half_up
from .pilot_data_generator import PilotStatistics, resolve_outcome, summarize_outcomes

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class AggregatorConfig:
    """Data-source choices, fixed at construction so aggregation never reads ambient state."""
    simulate_missing_outcomes: bool = getattr(app_config, 'SIMULATE_PILOT_DATA', True)
    reference_date: Optional[date] = None


@dataclass(frozen=True)
class PredictionStatistics:
    avg_dm_index: int = 0
    avg_htn_index: int = 0
    avg_ldl_index: int = 0
    avg_confidence: int = 0
    priorities: Dict[PriorityLevel, int] = field(default_factory=lambda: {level: 0 for level in PriorityLevel})
    total_with_predictions: int = 0


@dataclass(frozen=True)
class AggregateStatistics:
    total_patients: int
    predictions: PredictionStatistics
    pilot: PilotStatistics


def _rounded_mean(values: List[int]) -> int:
    if not values:
        return 0
    return round_half_up(sum(values) / len(values))


def summarize_predictions(scored: Iterable[tuple]) -> PredictionStatistics:
    """Reduce (record, prediction) pairs to the AI tab aggregates."""
    dm, htn, ldl, confidences = [], [], [], []
    priorities = {level: 0 for level in PriorityLevel}
    for record, prediction in scored:
        if record.has_diabetes and prediction.dm_prediction_index > 0:
            dm.append(prediction.dm_prediction_index)
        if record.has_hypertension and prediction.htn_prediction_index > 0:
            htn.append(prediction.htn_prediction_index)
        if record.has_dyslipidemia and prediction.ldl_prediction_index > 0:
            ldl.append(prediction.ldl_prediction_index)
        if prediction.confidence > 0:
            confidences.append(prediction.confidence)
        priorities[prediction.priority_level] += 1
    return PredictionStatistics(
        avg_dm_index=_rounded_mean(dm),
        avg_htn_index=_rounded_mean(htn),
        avg_ldl_index=_rounded_mean(ldl),
        avg_confidence=_rounded_mean(confidences),
        priorities=priorities,
        total_with_predictions=len(confidences),
    )


def calculate_prediction_statistics(records: Iterable[PatientClinicalRecord]) -> PredictionStatistics:
    return summarize_predictions((record, generate_prediction(record)) for record in records)


class StatisticsAggregator:
    """
    Single pass over the records: prediction per record, outcome per record
    (real, or simulated when the config allows), then both reductions.
    """
    def __init__(self, config: Optional[AggregatorConfig] = None):
        self.config = config or AggregatorConfig()
        logger.debug(f"StatisticsAggregator initialized (simulate_missing_outcomes={self.config.simulate_missing_outcomes}).")

    def aggregate(self, records: Iterable[PatientClinicalRecord], source_context: str = "StatisticsAggregator") -> AggregateStatistics:
        scored: List[tuple] = []
        outcomes: List[PilotOutcomeRecord] = []
        for record in records:
            prediction: PredictionResult = generate_prediction(record)
            scored.append((record, prediction))
            outcome = resolve_outcome(record, self.config.reference_date, self.config.simulate_missing_outcomes)
            if outcome is not None:
                outcomes.append(outcome)

        if not scored:
            logger.warning(f"({source_context}) No records to aggregate.")
        elif len(outcomes) < len(scored):
            logger.info(f"({source_context}) {len(scored) - len(outcomes)} of {len(scored)} records have no outcome data.")

        result = AggregateStatistics(
            total_patients=len(scored),
            predictions=summarize_predictions(scored),
            pilot=summarize_outcomes(outcomes),
        )
        logger.info(f"({source_context}) Aggregated {result.total_patients} records; "
                    f"{result.predictions.total_with_predictions} with predictions, {result.pilot.total} with outcomes.")
        return result
