# Copyright 2025 Allard Peper (Dragon Ace / DragonAceNL)
# Licensed under the Apache License, Version 2.0 (see LICENSE).

"""Exceptions and warnings raised by the geometry core."""

from typing import Optional


class ReliefMeshError(Exception):
    """Base class for all errors raised by ReliefMesh."""


class InvalidParameterError(ReliefMeshError, ValueError):
    """A caller-supplied parameter is outside its valid range."""


class EmptyGeometryError(ReliefMeshError):
    """Reconstruction produced no vertices or no triangles."""


class TooComplexError(ReliefMeshError):
    """Mesh exceeds the hard vertex or face ceiling."""

    def __init__(self, vertex_count: int, face_count: int, message: Optional[str] = None):
        self.vertex_count = vertex_count
        self.face_count = face_count
        super().__init__(
            message
            or f"Mesh too complex. Vertices: {vertex_count:,}, Faces: {face_count:,}"
        )


class OperationCancelledError(ReliefMeshError):
    """A long-running operation was cancelled or ran past its deadline."""


class ComplexityWarning(UserWarning):
    """
    Mesh exceeds the soft complexity ceiling.

    Returned (not raised) by the complexity guard so callers can surface it;
    pass it to ``warnings.warn`` to route it through the warnings machinery.
    """

    def __init__(self, vertex_count: int, face_count: int):
        self.vertex_count = vertex_count
        self.face_count = face_count
        super().__init__(
            f"High mesh complexity. May affect performance. "
            f"Vertices: {vertex_count:,}, Faces: {face_count:,}"
        )
