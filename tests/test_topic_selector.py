import random

import pytest

from questionbank.services.learning.domain.entities import CISSPDomain, TopicAssignment
from questionbank.services.learning.domain.taxonomy import DOMAIN_TOPICS, all_topic_assignments
from questionbank.services.learning.logic.topic_selector import TopicSelector


def _small_taxonomy(n: int):
    return [TopicAssignment(domain=CISSPDomain.ASSET_SECURITY, topic=f"topic-{i}") for i in range(n)]


def test_taxonomy_covers_all_domains():
    assignments = all_topic_assignments()

    # Las 8 áreas del CBK tienen temario y ningún subtema está vacío
    assert set(DOMAIN_TOPICS) == set(CISSPDomain)
    assert all(a.topic for a in assignments)
    assert len(assignments) == sum(len(topics) for topics in DOMAIN_TOPICS.values())


def test_returns_exactly_count_without_repeats():
    selector = TopicSelector(rng=random.Random(7))

    result = selector.select_uncovered_topics(10)

    assert len(result) == 10
    assert len({a.topic for a in result}) == 10


def test_zero_or_negative_count_returns_empty():
    selector = TopicSelector(taxonomy=_small_taxonomy(3))

    assert selector.select_uncovered_topics(0) == []
    assert selector.select_uncovered_topics(-2) == []


def test_skips_covered_topics_when_enough_remain():
    taxonomy = _small_taxonomy(10)
    selector = TopicSelector(taxonomy=taxonomy, rng=random.Random(1))

    # ESCENARIO: el usuario ya vio 6 de los 10 subtemas y pide 4
    covered = [f"topic-{i}" for i in range(6)]
    result = selector.select_uncovered_topics(4, covered)

    assert sorted(a.topic for a in result) == ["topic-6", "topic-7", "topic-8", "topic-9"]


def test_wraps_around_to_full_taxonomy():
    taxonomy = _small_taxonomy(10)
    selector = TopicSelector(taxonomy=taxonomy, rng=random.Random(2))

    # Solo quedan 2 sin ver y piden 5: se usa el temario completo
    covered = [f"topic-{i}" for i in range(8)]
    result = selector.select_uncovered_topics(5, covered)

    assert len(result) == 5
    assert len({a.topic for a in result}) == 5
    assert any(a.topic in covered for a in result)


def test_full_coverage_still_returns_topics():
    taxonomy = _small_taxonomy(6)
    selector = TopicSelector(taxonomy=taxonomy)

    result = selector.select_uncovered_topics(3, [a.topic for a in taxonomy])

    assert len(result) == 3


def test_count_larger_than_taxonomy_cycles():
    selector = TopicSelector(taxonomy=_small_taxonomy(3), rng=random.Random(3))

    result = selector.select_uncovered_topics(7)

    assert len(result) == 7
    # Cada ronda barajada contiene el temario entero antes de repetir
    assert {a.topic for a in result[:3]} == {"topic-0", "topic-1", "topic-2"}


def test_empty_taxonomy_raises():
    selector = TopicSelector(taxonomy=[])

    with pytest.raises(ValueError):
        selector.select_uncovered_topics(1)


def test_selection_is_shuffled():
    taxonomy = _small_taxonomy(30)
    orders = {
        tuple(a.topic for a in TopicSelector(taxonomy=taxonomy, rng=random.Random(seed)).select_uncovered_topics(30))
        for seed in range(5)
    }

    # Con 30! permutaciones posibles, cinco semillas no dan todas el mismo orden
    assert len(orders) > 1
