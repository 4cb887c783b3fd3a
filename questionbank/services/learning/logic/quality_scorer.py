import logging
from typing import Optional

from questionbank.services.learning.domain.entities import Difficulty, QualityStats

logger = logging.getLogger(__name__)

# --- PARÁMETROS DEL HEURÍSTICO ---
MIN_ANSWERS_FOR_SCORING = 5
SCORE_FLOOR = 0.1
SCORE_CEILING = 2.0
PENALTY_STEP = 0.05
REWARD_STEP = 0.02

TOO_EASY_RATE = 0.90
MISLEADING_RATE = 0.20
CALIBRATED_RANGE = (0.40, 0.70)


def compute_quality_score(stats: QualityStats) -> float:
    """
    Función pura: (score actual, estadísticas) -> score nuevo.

    Reglas por prioridad, solo se aplica la primera que encaja:
    1. >90% de aciertos en Easy/Medium -> distractores flojos, penaliza.
    2. <20% de aciertos en Easy -> mal calibrada para su dificultad, penaliza.
    3. 40%-70% de aciertos -> buena discriminación, premia.
    Por debajo de MIN_ANSWERS_FOR_SCORING no hay señal suficiente.
    """
    score = stats.quality_score
    if stats.times_answered < MIN_ANSWERS_FOR_SCORING:
        return score

    rate = stats.correct_rate
    low, high = CALIBRATED_RANGE

    if rate > TOO_EASY_RATE and stats.difficulty in (Difficulty.EASY, Difficulty.MEDIUM):
        return max(SCORE_FLOOR, score - PENALTY_STEP)
    if rate < MISLEADING_RATE and stats.difficulty == Difficulty.EASY:
        return max(SCORE_FLOOR, score - PENALTY_STEP)
    if low <= rate <= high:
        return min(SCORE_CEILING, score + REWARD_STEP)
    return score


class QualityScorer:
    """Envoltorio con efectos: lee estadísticas, calcula y persiste si cambia."""

    def __init__(self, repository):
        self.repository = repository

    async def apply_quality_score(self, question_id: str, stats: Optional[QualityStats] = None) -> Optional[float]:
        if stats is None:
            stats = await self.repository.get_quality_stats(question_id)
        if stats is None:
            return None

        new_score = compute_quality_score(stats)
        if new_score == stats.quality_score:
            return new_score

        updated = await self.repository.update_quality_score(question_id, new_score, stats.quality_score)
        if updated:
            logger.info(f"📈 Quality score {question_id}: {stats.quality_score:.2f} -> {new_score:.2f}")
        else:
            logger.debug(f"Quality score de {question_id} cambiado en paralelo, se omite la escritura")
        return new_score
