"""Display styling per outcome class, kept out of the pipeline core."""

from __future__ import annotations

from dataclasses import dataclass

from tumorlens.pipeline.taxonomy import OutcomeClass


@dataclass(frozen=True)
class OutcomeStyle:
    color: str
    icon: str


DEFAULT_STYLE = OutcomeStyle(color="primary", icon="alert-circle")

OUTCOME_STYLES: dict[OutcomeClass, OutcomeStyle] = {
    OutcomeClass.NO_TUMOR: OutcomeStyle(color="success", icon="check-circle"),
    OutcomeClass.GLIOMA: OutcomeStyle(color="warning", icon="alert-circle"),
    OutcomeClass.MENINGIOMA: OutcomeStyle(color="destructive", icon="alert-circle"),
    OutcomeClass.PITUITARY: OutcomeStyle(color="primary", icon="alert-circle"),
}


def style_for(outcome: OutcomeClass) -> OutcomeStyle:
    return OUTCOME_STYLES.get(outcome, DEFAULT_STYLE)
