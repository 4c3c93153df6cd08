"""
Generator — LLM Inference Angles and Predictions

For each query, three inferences are generated concurrently:
  - conservative: stays close to explicit evidence
  - progressive:  explores reasonable extrapolations
  - synthetic:    bridges the two perspectives

Each angle carries a heuristic confidence and a recursion check
against inferences the user already has.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Iterable

from verinfer.llm import LLMProvider
from verinfer.llm.breaker import CircuitOpenError
from verinfer.logging import get_logger
from verinfer.recursion import RecursionCheck, recursion_detector
from verinfer.scorer import angle_confidence

logger = get_logger("generator")

ANGLES = ("conservative", "progressive", "synthetic")


class GenerationError(Exception):
    """Raised when the LLM cannot produce inferences or predictions."""


@dataclass
class InferenceAngle:
    text: str
    confidence: float
    angle: str
    recursion: RecursionCheck


@dataclass
class InferenceAngles:
    conservative: InferenceAngle
    progressive: InferenceAngle
    synthetic: InferenceAngle

    def texts(self) -> tuple[str, str, str]:
        """(A, B, C) in storage order."""
        return (self.conservative.text, self.progressive.text, self.synthetic.text)


# ============================================================
# PROMPTS
# ============================================================

_PROMPT_HEADER = """Given the query: "{topic}"
Context: {context}
Data type: {data_type}
"""

_FORMAT_LINE = 'Format: Provide the inference followed by "Evidence:" and list supporting points.'

ANGLE_INSTRUCTIONS: dict[str, str] = {
    "conservative": (
        "Provide a conservative, data-grounded inference that stays close to explicit evidence.\n"
        "Be cautious about extrapolation and focus on what can be directly supported.\n"
        "Include specific evidence citations where possible."
    ),
    "progressive": (
        "Provide an innovative inference that explores reasonable extrapolations and patterns.\n"
        "Look for emerging trends, potential connections, and forward-looking insights.\n"
        "Be bold but maintain logical consistency."
    ),
    "synthetic": (
        "Provide a synthetic inference that bridges multiple perspectives and finds middle ground.\n"
        "Integrate different viewpoints, reconcile contradictions, and create a balanced synthesis.\n"
        "Look for ways to combine conservative and progressive insights."
    ),
}

PREDICTION_PROMPT = """Based on these verified inferences:
{inferences}

Domain: {domain}

Synthesize these verified inferences to generate forward-looking predictions.
Consider patterns, trends, and logical extensions of the verified knowledge.
Provide 3-5 specific predictions with confidence levels (High/Medium/Low).
Format each as: "[Confidence] Prediction: [specific prediction with rationale]\""""


def build_angle_prompt(angle: str, topic: str, context: str, data_type: str) -> str:
    header = _PROMPT_HEADER.format(topic=topic, context=context, data_type=data_type)
    return f"{header}\n{ANGLE_INSTRUCTIONS[angle]}\n{_FORMAT_LINE}"


# ============================================================
# GENERATION
# ============================================================

async def generate_inference_angles(
    llm: LLMProvider,
    topic: str,
    context: str,
    data_type: str,
    existing: Iterable[str] = (),
) -> InferenceAngles:
    """
    Generate the three inference angles for a query.

    Raises:
        CircuitOpenError if the provider is failing fast.
        GenerationError if any of the three LLM calls fails.
    """
    existing = list(existing)
    prompts = [build_angle_prompt(a, topic, context, data_type) for a in ANGLES]

    try:
        texts = await llm.generate_many(prompts)
    except CircuitOpenError:
        raise
    except Exception as e:
        logger.error("Error generating inferences: %s", e, exc_info=True)
        raise GenerationError("Failed to generate inference angles") from e

    angles = {}
    for angle, text in zip(ANGLES, texts):
        check = recursion_detector.detect_recursion(text, existing)
        if check.has_recursion:
            logger.warning(
                "Generated %s inference repeats existing reasoning", angle,
                extra={"angle": angle, "recursion_score": check.similarity_score},
            )
        angles[angle] = InferenceAngle(
            text=text,
            confidence=angle_confidence(text),
            angle=angle,
            recursion=check,
        )

    return InferenceAngles(**angles)


async def generate_predictions(
    llm: LLMProvider,
    verified_inferences: list[str],
    domain: str,
) -> str:
    """Synthesize forward-looking predictions from verified inferences."""
    numbered = "\n".join(
        f"{i}. {text}" for i, text in enumerate(verified_inferences, start=1)
    )
    prompt = PREDICTION_PROMPT.format(inferences=numbered, domain=domain)

    try:
        return await llm.generate(prompt)
    except CircuitOpenError:
        raise
    except Exception as e:
        logger.error("Error generating predictions: %s", e, exc_info=True)
        raise GenerationError("Failed to generate predictions") from e
