"""Weighted scenario selection for virtual-user iterations."""

import random
from typing import List, Sequence

from loadprobe.models import ScenarioTemplate


def select_scenario(scenarios: Sequence[ScenarioTemplate], rng=random) -> ScenarioTemplate:
    """Pick one scenario with probability proportional to its weight.

    Args:
        scenarios: Candidate templates. Must not be empty.
        rng: Object with a ``random()`` method; the ``random`` module by default.

    Returns:
        The selected ScenarioTemplate.

    Raises:
        ValueError: If ``scenarios`` is empty.
    """
    if not scenarios:
        raise ValueError("at least one scenario is required")

    total = sum(s.weight for s in scenarios)
    remaining = rng.random() * total
    for scenario in scenarios:
        remaining -= scenario.weight
        if remaining <= 0:
            return scenario
    # float residue
    return scenarios[-1]


def scenario_errors(scenarios: List[ScenarioTemplate]) -> List[str]:
    errors = []
    if not scenarios:
        errors.append("at least one scenario is required")
    for i, s in enumerate(scenarios):
        if not s.name:
            errors.append(f"scenarios[{i}].name is required")
        if s.weight <= 0:
            errors.append(f"scenarios[{i}].weight must be positive")
    return errors
