import random
from typing import Iterable, List, Optional

from questionbank.services.learning.domain.entities import TopicAssignment
from questionbank.services.learning.domain.taxonomy import all_topic_assignments

class TopicSelector:
    """
    Decide QUÉ subtemas cubrirá cada hueco del lote.
    Prioridad: subtemas que el usuario aún no ha visto; si no quedan suficientes,
    se vuelve a la taxonomía completa (la cobertura nunca bloquea un lote).
    """

    def __init__(self, taxonomy: Optional[List[TopicAssignment]] = None, rng: Optional[random.Random] = None):
        self.taxonomy = taxonomy if taxonomy is not None else all_topic_assignments()
        self.rng = rng or random.Random()

    def select_uncovered_topics(self, count: int, covered_topics: Iterable[str] = ()) -> List[TopicAssignment]:
        if count <= 0:
            return []
        if not self.taxonomy:
            raise ValueError("La taxonomía de temas está vacía.")

        covered = set(covered_topics)
        pool = [a for a in self.taxonomy if a.topic not in covered]

        # Wraparound: sin suficientes temas nuevos usamos todo el temario
        if len(pool) < count:
            pool = list(self.taxonomy)

        # Fisher-Yates
        self.rng.shuffle(pool)

        if len(pool) >= count:
            return pool[:count]

        # Taxonomía más pequeña que el lote: repetimos rondas barajadas
        selected = list(pool)
        while len(selected) < count:
            round_ = list(self.taxonomy)
            self.rng.shuffle(round_)
            selected.extend(round_[:count - len(selected)])
        return selected
