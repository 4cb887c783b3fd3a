from typing import Sequence

from questionbank.services.learning.domain.entities import Difficulty, TopicAssignment

class PromptManager:
    """
    CEREBRO CENTRALIZADO DE PROMPTS.
    Los prompts van en inglés: es el idioma del examen CISSP.
    """

    DIFFICULTY_RUBRIC = {
        Difficulty.EASY: (
            "Focus on fundamental concepts, definitions, and basic security principles. "
            "Questions should test 'Knowledge' and 'Comprehension'."
        ),
        Difficulty.MEDIUM: (
            "Focus on the application of security controls. "
            "Use scenarios that require 'Application' and 'Analysis'."
        ),
        Difficulty.HARD: (
            "Focus on strategic judgment and complex decision-making. Questions should test "
            "'Evaluation' and 'Synthesis', often requiring the user to choose the 'BEST', 'MOST', "
            "or 'FIRST' action among several plausible options."
        ),
    }

    @staticmethod
    def get_examiner_system_prompt() -> str:
        return (
            "You are a world-class CISSP certification instructor and subject matter expert. "
            "Your goal is to prepare candidates for the actual (ISC)2 exam by focusing on the "
            "'Manager's Perspective': prioritizing risk management, business continuity, and the "
            "protection of organizational assets. Avoid questions that only require rote memorization; "
            "instead, focus on the application of the CISSP Common Body of Knowledge (CBK) in "
            "real-world environments."
        )

    @staticmethod
    def _get_assignment_section(assignments: Sequence[TopicAssignment]) -> str:
        lines = [
            f"      {i}. Domain: {a.domain.value} | Sub-topic: {a.topic}"
            for i, a in enumerate(assignments, start=1)
        ]
        return "\n".join(lines)

    @staticmethod
    def _get_avoid_section(previous_question_texts: Sequence[str]) -> str:
        if not previous_question_texts:
            return ""
        listed = "\n".join(f"      {i}. {q}" for i, q in enumerate(previous_question_texts, start=1))
        return (
            "\n\n      CRITICAL: Do NOT repeat or rephrase any of these previously asked questions. "
            "Each new question must cover a DIFFERENT scenario and concept:\n" + listed
        )

    @staticmethod
    def _get_structure_hint() -> str:
        return (
            'Return JSON: {"questions": [{"domain": str, "sub_topic": str, "question": str, '
            '"options": [str, str, str, str], "correct_answer_index": int, "explanation": str}]}'
        )

    @staticmethod
    def build_question_batch_prompt(
        difficulty: Difficulty,
        assignments: Sequence[TopicAssignment],
        previous_question_texts: Sequence[str] = (),
    ) -> str:
        count = len(assignments)
        rubric = PromptManager.DIFFICULTY_RUBRIC[difficulty]

        return f"""Generate exactly {count} unique, high-quality CISSP practice exam questions.

      Difficulty Level: {difficulty.value} ({rubric})

      Topic assignments (one question per line, in this order; copy domain and sub_topic verbatim):
{PromptManager._get_assignment_section(assignments)}

      Requirements:
      1. Format: Scenario-based. Each question must provide a realistic professional context.
      2. Options: Provide exactly 4 plausible multiple-choice options.
      3. Distractors: Distractors should be technically accurate security concepts but incorrect for the specific scenario or less effective than the correct answer.
      4. Explanation: Clarify why the correct answer is superior and briefly explain why the other options are incorrect or less ideal in this context.
      5. {PromptManager._get_structure_hint()}{PromptManager._get_avoid_section(previous_question_texts)}"""
