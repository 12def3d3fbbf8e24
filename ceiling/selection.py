"""Choose between linear and censored models from the rule outcomes."""

from __future__ import annotations

import enum
from dataclasses import dataclass
from typing import Any

from .diagnostics import RuleOutcome
from .errors import ModelingGateError


class ModelChoice(enum.Enum):
    USE_LINEAR = "use_linear"
    USE_CENSORED = "use_censored"
    NO_VALID_MODEL = "no_valid_model"


@dataclass(frozen=True)
class ModelDecision:
    """Selected model family plus the rule and violations that triggered it."""

    choice: ModelChoice
    rule: str
    violations: tuple[dict[str, Any], ...] = ()
    justification: str = ""

    @property
    def violating_groups(self) -> tuple[str, ...]:
        seen: dict[str, None] = {}
        for item in self.violations:
            for group in item["groups"]:
                seen.setdefault(group, None)
        return tuple(seen)


def select_model(rule_30_20: RuleOutcome, rule_70: RuleOutcome) -> ModelDecision:
    """Map the two rule outcomes to a model decision.

    Both rules pass -> USE_LINEAR; only the 30-20 rule fails -> USE_CENSORED;
    the 70% rule fails -> NO_VALID_MODEL, whatever the 30-20 outcome.
    """
    if not rule_70.passed:
        return ModelDecision(
            choice=ModelChoice.NO_VALID_MODEL,
            rule=rule_70.rule,
            violations=rule_70.violations,
            justification=(
                rule_70.describe()
                + ". Censored regression would still be noticeably biased."
            ),
        )
    if not rule_30_20.passed:
        return ModelDecision(
            choice=ModelChoice.USE_CENSORED,
            rule=rule_30_20.rule,
            violations=rule_30_20.violations,
            justification=(
                rule_30_20.describe()
                + "; 70% rule passed, so a Tobit model is appropriate."
            ),
        )
    return ModelDecision(
        choice=ModelChoice.USE_LINEAR,
        rule=rule_30_20.rule,
        justification=(
            "30-20 and 70% rules passed; ANOVA/ANCOVA is acceptable and a "
            "Tobit model is optional."
        ),
    )


def require_valid_model(decision: ModelDecision) -> ModelDecision:
    """Return ``decision`` unchanged, or raise when no model is valid."""
    if decision.choice is ModelChoice.NO_VALID_MODEL:
        raise ModelingGateError(decision.justification, decision=decision)
    return decision
