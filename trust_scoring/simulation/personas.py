# ------------------------------------------------------------------------------------------------
# License
# ------------------------------------------------------------------------------------------------

# Copyright (c) 2025 LSeu-Open
#
# This code is licensed under the MIT License.
# See LICENSE file in the root directory

# ------------------------------------------------------------------------------------------------
# Description
# ------------------------------------------------------------------------------------------------

"""
Synthetic personas for simulation runs.

A persona operates one model and answers the synthetic prompt set through
its ``answer_bias_fn``. Profiles:

- ``altruistic``: answers every prompt, correct with probability ``accuracy``
- ``greedy``: answers only the ``coverage_fraction`` of prompts it is sure
  of, always correctly, to inflate its mean
- ``cabal``: answers poorly and, together with the other members of its
  cabal, submits perfect scores for the cabal's target model
- ``random``: picks a random option
- ``malicious``: gives a wrong answer with probability ``flip_fraction``

Personas live only inside a simulation run.
"""

from __future__ import annotations

import hashlib
import random
from dataclasses import dataclass, field
from typing import Callable, Dict, List, Mapping, Optional

from ..core.exceptions import PolicyConfigError
from ..core.types import Prompt

BEHAVIOR_PROFILES = ("altruistic", "greedy", "cabal", "random", "malicious")
ADVERSARIAL_PROFILES = ("cabal", "malicious")

AnswerBiasFn = Callable[[Prompt, random.Random], Optional[str]]


def _correct(prompt: Prompt) -> str:
    return prompt.answer_key or ""


def _wrong(prompt: Prompt, rng: random.Random) -> str:
    choices = sorted(letter for letter in prompt.options if letter != prompt.answer_key)
    return rng.choice(choices) if choices else ""


def _is_known(prompt: Prompt, salt: str, fraction: float) -> bool:
    digest = hashlib.sha256(f"{salt}:{prompt.id}".encode("utf-8")).digest()
    return int.from_bytes(digest[:8], "big") / 2 ** 64 < fraction


def altruistic_bias(accuracy: float) -> AnswerBiasFn:
    def answer(prompt: Prompt, rng: random.Random) -> Optional[str]:
        return _correct(prompt) if rng.random() < accuracy else _wrong(prompt, rng)
    return answer


def greedy_bias(coverage_fraction: float, salt: str) -> AnswerBiasFn:
    def answer(prompt: Prompt, rng: random.Random) -> Optional[str]:
        if not _is_known(prompt, salt, coverage_fraction):
            return None
        return _correct(prompt)
    return answer


def random_bias() -> AnswerBiasFn:
    def answer(prompt: Prompt, rng: random.Random) -> Optional[str]:
        return rng.choice(sorted(prompt.options)) if prompt.options else None
    return answer


def malicious_bias(flip_fraction: float) -> AnswerBiasFn:
    def answer(prompt: Prompt, rng: random.Random) -> Optional[str]:
        return _wrong(prompt, rng) if rng.random() < flip_fraction else _correct(prompt)
    return answer


@dataclass(frozen=True)
class Persona:
    """Synthetic validator/provider archetype."""

    id: str
    behavior_profile: str
    answer_bias_fn: AnswerBiasFn = field(compare=False, repr=False)
    identities: int = 1
    accuracy: float = 1.0
    cabal_id: Optional[str] = None

    @property
    def model_id(self) -> str:
        return f"model-{self.id}"

    @property
    def adversarial(self) -> bool:
        return self.behavior_profile in ADVERSARIAL_PROFILES


def make_persona(persona_id: str, behavior_profile: str, *, identities: int = 1, accuracy: float = 0.9,
                 flip_fraction: float = 1.0, coverage_fraction: float = 0.3,
                 cabal_id: Optional[str] = None) -> Persona:
    """
    Build a persona for a behavior profile.

    Raises:
        PolicyConfigError: If the profile is unknown or a parameter is out of range
    """
    if behavior_profile not in BEHAVIOR_PROFILES:
        raise PolicyConfigError(f"Unknown behavior profile '{behavior_profile}'; expected one of {BEHAVIOR_PROFILES}")
    if identities < 1:
        raise PolicyConfigError("A persona needs at least one signing identity")
    for name, value in (("accuracy", accuracy), ("flip_fraction", flip_fraction),
                        ("coverage_fraction", coverage_fraction)):
        if not 0.0 <= value <= 1.0:
            raise PolicyConfigError(f"{name} must be between 0 and 1, got {value}")

    if behavior_profile == "altruistic":
        bias, quality = altruistic_bias(accuracy), accuracy
    elif behavior_profile == "greedy":
        bias, quality = greedy_bias(coverage_fraction, persona_id), coverage_fraction
    elif behavior_profile == "cabal":
        bias, quality = altruistic_bias(accuracy), accuracy
        cabal_id = cabal_id or "cabal-0"
    elif behavior_profile == "random":
        bias, quality = random_bias(), 0.25
    else:
        bias, quality = malicious_bias(flip_fraction), 1.0 - flip_fraction

    return Persona(
        id=persona_id,
        behavior_profile=behavior_profile,
        answer_bias_fn=bias,
        identities=identities,
        accuracy=quality,
        cabal_id=cabal_id,
    )


@dataclass(frozen=True)
class PersonaSpec:
    """Declarative persona description, turned into a ``Persona`` by ``build``."""

    id: str
    behavior_profile: str
    identities: int = 1
    accuracy: float = 0.9
    flip_fraction: float = 1.0
    coverage_fraction: float = 0.3
    cabal_id: Optional[str] = None

    @classmethod
    def from_dict(cls, data: Mapping[str, object]) -> "PersonaSpec":
        return cls(
            id=str(data["id"]),
            behavior_profile=str(data.get("behaviorProfile", data.get("behavior_profile", "altruistic"))),
            identities=int(data.get("identities", 1)),
            accuracy=float(data.get("accuracy", 0.9)),
            flip_fraction=float(data.get("flipFraction", data.get("flip_fraction", 1.0))),
            coverage_fraction=float(data.get("coverageFraction", data.get("coverage_fraction", 0.3))),
            cabal_id=data.get("cabalId", data.get("cabal_id")),
        )

    def build(self) -> Persona:
        return make_persona(
            self.id,
            self.behavior_profile,
            identities=self.identities,
            accuracy=self.accuracy,
            flip_fraction=self.flip_fraction,
            coverage_fraction=self.coverage_fraction,
            cabal_id=self.cabal_id,
        )


def build_personas(distribution: Mapping[str, float], count: int, *, cabal_size: int = 3,
                   accuracy: Optional[Mapping[str, float]] = None) -> List[Persona]:
    """
    Build ``count`` personas split across profiles by percentage.

    Rounding remainders go to the first profile in ``BEHAVIOR_PROFILES``
    order. Cabal members are grouped ``cabal_size`` at a time.
    """
    unknown = set(distribution) - set(BEHAVIOR_PROFILES)
    if unknown:
        raise PolicyConfigError(f"Unknown behavior profile(s): {sorted(unknown)}")
    total = sum(distribution.values())
    if total <= 0:
        raise PolicyConfigError("Persona distribution must have a positive total")

    counts: Dict[str, int] = {
        profile: int(count * distribution.get(profile, 0) / total) for profile in BEHAVIOR_PROFILES
    }
    remainder = count - sum(counts.values())
    for profile in BEHAVIOR_PROFILES:
        if remainder <= 0:
            break
        if distribution.get(profile, 0) > 0:
            counts[profile] += remainder
            remainder = 0

    default_accuracy = {"altruistic": 0.9, "cabal": 0.3}
    default_accuracy.update(accuracy or {})

    personas: List[Persona] = []
    cabal_counter = 0
    for profile in BEHAVIOR_PROFILES:
        for index in range(counts[profile]):
            persona_id = f"{profile}-{index:02d}"
            cabal_id = None
            if profile == "cabal":
                cabal_id = f"cabal-{cabal_counter // max(1, cabal_size)}"
                cabal_counter += 1
            personas.append(make_persona(
                persona_id,
                profile,
                accuracy=default_accuracy.get(profile, 0.9),
                cabal_id=cabal_id,
            ))
    return personas


__all__ = [
    "ADVERSARIAL_PROFILES",
    "BEHAVIOR_PROFILES",
    "Persona",
    "PersonaSpec",
    "build_personas",
    "make_persona",
]
