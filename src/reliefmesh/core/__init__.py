# Copyright 2025 Allard Peper (Dragon Ace / DragonAceNL)
# Licensed under the Apache License, Version 2.0 (see LICENSE).

"""
Geometry core for depth-to-solid reconstruction and print analysis.

- heightmap: Resample a depth buffer onto a masked, smoothed grid
- shell: Build the closed two-sided relief mesh
- complexity: Hard and soft mesh size limits
- refine: Midpoint subdivision and Laplacian smoothing
- analysis: Printability analysis for arbitrary meshes
- support: Support settings and tips derived from an analysis
- pipeline: End-to-end reconstruction with per-stage statistics
- mesh_io: Load and save meshes, depth maps and masks
"""

from .errors import (
    ReliefMeshError,
    InvalidParameterError,
    EmptyGeometryError,
    TooComplexError,
    OperationCancelledError,
    ComplexityWarning,
)

from .config import ReconstructionParams

from .cancellation import CancellationToken

from .mesh import IndexedMesh, compute_vertex_normals

from .heightmap import Heightmap, build_heightmap

from .shell import (
    BoundaryEdge,
    EdgeDirection,
    ShellMesh,
    build_shell_mesh,
    find_boundary_edges,
)

from .complexity import check_complexity, check_mesh_complexity

from .refine import subdivide, smooth, refine, vertex_adjacency

from .units import infer_unit_scale, resolve_unit_scale

from .analysis import (
    GeometricAnalysis,
    LayerHeightRecommendation,
    OverhangRegion,
    OverhangSeverity,
    PrintDifficulty,
    SplitSuggestion,
    analyze,
    empty_analysis,
)

from .support import (
    SupportConfig,
    SupportDensity,
    SupportType,
    default_support_config,
    recommend_support_config,
    support_recommendations,
)

from .pipeline import (
    ReconstructionResult,
    StageStats,
    print_scale_transform,
    reconstruct,
)

from .mesh_io import (
    load_mesh,
    save_mesh,
    load_depth,
    load_mask,
    format_analysis,
    print_analysis,
)

__all__ = [
    # Errors
    "ReliefMeshError",
    "InvalidParameterError",
    "EmptyGeometryError",
    "TooComplexError",
    "OperationCancelledError",
    "ComplexityWarning",
    # Configuration
    "ReconstructionParams",
    "CancellationToken",
    # Mesh
    "IndexedMesh",
    "compute_vertex_normals",
    # Reconstruction
    "Heightmap",
    "build_heightmap",
    "BoundaryEdge",
    "EdgeDirection",
    "ShellMesh",
    "build_shell_mesh",
    "find_boundary_edges",
    "check_complexity",
    "check_mesh_complexity",
    "subdivide",
    "smooth",
    "refine",
    "vertex_adjacency",
    "ReconstructionResult",
    "StageStats",
    "reconstruct",
    "print_scale_transform",
    # Analysis
    "infer_unit_scale",
    "resolve_unit_scale",
    "GeometricAnalysis",
    "LayerHeightRecommendation",
    "OverhangRegion",
    "OverhangSeverity",
    "PrintDifficulty",
    "SplitSuggestion",
    "analyze",
    "empty_analysis",
    # Supports
    "SupportConfig",
    "SupportDensity",
    "SupportType",
    "default_support_config",
    "recommend_support_config",
    "support_recommendations",
    # I/O
    "load_mesh",
    "save_mesh",
    "load_depth",
    "load_mask",
    "format_analysis",
    "print_analysis",
]
