"""
Matrix Module
=============

Front-end emulation of a ladder's pixel array.
"""

from cvxd_digitiser.matrix.pixel_matrix import GeometryError, PixelDigiMatrix

__all__ = ["GeometryError", "PixelDigiMatrix"]
