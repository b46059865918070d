# Copyright 2025 Allard Peper (Dragon Ace / DragonAceNL)
# Licensed under the Apache License, Version 2.0 (see LICENSE).

"""
Mesh complexity limits.

Subdivision quadruples the triangle count per pass, so meshes are checked
against a hard ceiling (reject) and a soft ceiling (warn) before any
refinement runs.
"""

from typing import Optional
import logging

from .config import MAX_FACES, MAX_VERTICES, WARN_FACES, WARN_VERTICES
from .errors import ComplexityWarning, TooComplexError
from .mesh import IndexedMesh

logger = logging.getLogger(__name__)


def check_complexity(vertex_count: int, face_count: int) -> Optional[ComplexityWarning]:
    """
    Validate vertex and face counts against the complexity limits.

    Args:
        vertex_count: Number of vertices
        face_count: Number of triangles

    Returns:
        A ComplexityWarning above the soft ceiling, otherwise None

    Raises:
        TooComplexError: Above the hard ceiling; reduce the resolution or
            simplify the input
    """
    if vertex_count > MAX_VERTICES or face_count > MAX_FACES:
        logger.error(
            f"Mesh rejected: {vertex_count:,}/{MAX_VERTICES:,} vertices, "
            f"{face_count:,}/{MAX_FACES:,} faces"
        )
        raise TooComplexError(
            vertex_count,
            face_count,
            f"Mesh too complex. Vertices: {vertex_count:,}/{MAX_VERTICES:,}, "
            f"Faces: {face_count:,}/{MAX_FACES:,}",
        )

    if vertex_count > WARN_VERTICES or face_count > WARN_FACES:
        warning = ComplexityWarning(vertex_count, face_count)
        logger.warning(str(warning))
        return warning

    return None


def check_mesh_complexity(mesh: IndexedMesh) -> Optional[ComplexityWarning]:
    """Run ``check_complexity`` on a mesh's own counts."""
    return check_complexity(mesh.vertex_count, mesh.face_count)
