"""
CVXD Digitiser
==============

Pixel-level digitiser for the vertex barrel of a particle detector.

Charge deposited in each pixel is integrated by a simulated front-end
chip clocked in discrete ticks. Pixels crossing the threshold fire,
fired pixels are grouped with a Hoshen-Kopelman pass each tick, the
passes are reconciled across ticks, and every finished cluster becomes
one hit with a charge-weighted position and an encoded cell ID.

Components:
    - matrix: Ladder pixel arena and front-end model
    - clustering: Union-find labelling and cross-tick cluster heap
    - sensor: Hoshen-Kopelman sensor and sensor factory
    - pipeline: LangGraph tick cycle and event-level digitizer
    - geometry: Grid indexing and cell ID bit-fields

Example:
    from cvxd_digitiser.config import settings
    from cvxd_digitiser.models import ChargeDeposit
    from cvxd_digitiser.pipeline import VertexDigitizer

    digitizer = VertexDigitizer(settings)
    result = digitizer.digitize_event([
        ChargeDeposit(layer=0, ladder=1, row=3, col=5, charge=500.0),
    ])
"""

__version__ = "0.2.0"
__author__ = "CVXD Project"

__all__ = [
    "__version__",
]
