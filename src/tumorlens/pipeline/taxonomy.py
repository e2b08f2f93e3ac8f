"""Fixed outcome taxonomy reported by the remote classifier."""

from __future__ import annotations

from enum import StrEnum


class OutcomeClass(StrEnum):
    """Diagnostic categories, in canonical display order."""

    NO_TUMOR = "No Tumor"
    GLIOMA = "Glioma Tumor"
    MENINGIOMA = "Meningioma Tumor"
    PITUITARY = "Pituitary Tumor"

    @property
    def key(self) -> str:
        """snake_case alias used by keyed score payloads, e.g. ``glioma_tumor``."""
        return self.value.lower().replace(" ", "_")

    @property
    def rank(self) -> int:
        """Declaration index, used to break confidence ties."""
        return _DECLARATION_ORDER[self]


_DECLARATION_ORDER: dict[OutcomeClass, int] = {outcome: index for index, outcome in enumerate(OutcomeClass)}

# Index-to-class mapping for array-shaped score payloads. This matches the
# label order the hosted model was trained with; it is not published by the
# service and should be re-checked whenever the model is redeployed.
POSITIONAL_ORDER: tuple[OutcomeClass, ...] = (
    OutcomeClass.GLIOMA,
    OutcomeClass.MENINGIOMA,
    OutcomeClass.NO_TUMOR,
    OutcomeClass.PITUITARY,
)
