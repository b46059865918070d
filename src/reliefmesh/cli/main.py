# Copyright 2025 Allard Peper (Dragon Ace / DragonAceNL)
# Licensed under the Apache License, Version 2.0 (see LICENSE).

"""
Command-line interface for ReliefMesh.

Provides commands for:
- reconstruct: Turn a depth map (and optional mask) into a printable solid
- analyze: Analyze a mesh for 3D printing
- checkenv: Verify the environment is set up correctly
"""

import dataclasses
import json
import logging
import sys
from pathlib import Path
from typing import Optional

import click

from reliefmesh import __version__
from reliefmesh.core import (
    ReliefMeshError,
    ReconstructionParams,
    analyze as analyze_mesh,
    format_analysis,
    load_depth,
    load_mask,
    load_mesh,
    print_scale_transform,
    reconstruct as reconstruct_mesh,
    recommend_support_config,
    save_mesh,
    support_recommendations,
)


def setup_logging(verbose: bool) -> None:
    """Configure logging based on verbosity."""
    level = logging.DEBUG if verbose else logging.INFO
    logging.basicConfig(
        level=level,
        format="%(asctime)s [%(levelname)s] %(message)s",
        datefmt="%H:%M:%S"
    )


def _echo_tips(analysis) -> None:
    click.echo("\nSupport:")
    for tip in support_recommendations(analysis):
        click.echo(f"  - {tip}")


@click.group()
@click.version_option(version=__version__, prog_name="reliefmesh")
def main():
    """
    ReliefMesh - Depth-to-solid reconstruction and print analysis.

    Use 'reliefmesh COMMAND --help' for more information on each command.
    """
    pass


@main.command()
@click.option("--depth", "-d", "depth_path", required=True, type=click.Path(exists=True),
              help="Depth map (.npy or greyscale image)")
@click.option("--mask", "-m", "mask_path", type=click.Path(exists=True),
              help="RGBA mask image; transparent pixels are removed")
@click.option("--output", "-o", "output_path", type=click.Path(),
              help="Output mesh path (default: <depth>_relief.stl)")
@click.option("--resolution", type=int, help="Source pixels per grid segment")
@click.option("--depth-scale", type=float, help="Relief height multiplier")
@click.option("--smoothness", type=float, help="Neighbor blend while sampling, 0-1")
@click.option("--params", "-p", "params_path", type=click.Path(exists=True),
              help="JSON file with reconstruction parameters")
@click.option("--analyze", "run_analysis", is_flag=True, help="Analyze the result for printing")
@click.option("--report", "-r", "report_path", type=click.Path(),
              help="Path for JSON report output")
@click.option("--verbose", "-v", is_flag=True, help="Enable verbose logging")
def reconstruct(
    depth_path: str,
    mask_path: Optional[str],
    output_path: Optional[str],
    resolution: Optional[int],
    depth_scale: Optional[float],
    smoothness: Optional[float],
    params_path: Optional[str],
    run_analysis: bool,
    report_path: Optional[str],
    verbose: bool
):
    """
    Reconstruct a closed relief solid from a depth map.

    Examples:

        reliefmesh reconstruct --depth depth.png

        reliefmesh reconstruct -d depth.png -m mask.png -o relief.stl --analyze

        reliefmesh reconstruct -d depth.npy -p params.json -r report.json
    """
    setup_logging(verbose)

    depth_path = Path(depth_path)
    if output_path:
        output_path = Path(output_path)
    else:
        output_path = depth_path.parent / f"{depth_path.stem}_relief.stl"

    try:
        params = ReconstructionParams.load(params_path) if params_path else ReconstructionParams()
    except ValueError as e:
        click.echo(f"Error loading parameters: {e}")
        sys.exit(1)
    overrides = {
        name: value
        for name, value in (
            ("resolution", resolution),
            ("depth_scale", depth_scale),
            ("smoothness", smoothness),
        )
        if value is not None
    }
    params = dataclasses.replace(params, **overrides)

    click.echo(f"Loading: {depth_path}")
    try:
        depth = load_depth(depth_path)
        mask = load_mask(mask_path) if mask_path else None
    except (FileNotFoundError, ValueError) as e:
        click.echo(f"Error loading input: {e}")
        sys.exit(1)

    height, width = depth.shape
    click.echo(f"  Depth map: {width}x{height}")
    click.echo(
        f"  Parameters: resolution={params.resolution}, "
        f"depth_scale={params.depth_scale}, smoothness={params.smoothness}"
    )

    def progress(stage: str, stats) -> None:
        click.echo(f"  [{stage}] {stats.vertex_count:,} vertices, {stats.face_count:,} faces")

    click.echo("\nReconstructing...")
    try:
        result = reconstruct_mesh(depth, width, height, params, mask=mask, progress=progress)
    except ReliefMeshError as e:
        click.echo(f"\nReconstruction failed: {e}")
        sys.exit(1)

    for warning in result.warnings:
        click.echo(f"  ⚠ {warning}")

    mesh = result.mesh
    click.echo(f"\nReconstruction completed in {result.total_duration_ms:.1f}ms")
    click.echo(f"  Boundary edges: {result.boundary_edge_count:,}")
    click.echo(f"  Closed: {mesh.is_closed_manifold()}")

    click.echo(f"\nSaving: {output_path}")
    save_mesh(mesh, output_path)

    analysis = None
    if run_analysis:
        analysis = analyze_mesh(mesh)
        click.echo(format_analysis(analysis, f"Print Analysis: {output_path.name}"))
        _echo_tips(analysis)

    if report_path:
        report_path = Path(report_path)
        report = {
            "input": str(depth_path),
            "mask": str(mask_path) if mask_path else None,
            "output": str(output_path),
            "parameters": params.to_dict(),
            "reconstruction": result.to_dict(),
        }
        if analysis is not None:
            report["analysis"] = analysis.to_dict()
            report["support"] = recommend_support_config(analysis).to_dict()
        report_path.parent.mkdir(parents=True, exist_ok=True)
        with open(report_path, "w") as f:
            json.dump(report, f, indent=2)
        click.echo(f"Report saved: {report_path}")


@main.command()
@click.option("--input", "-i", "input_path", required=True, type=click.Path(exists=True),
              help="Path to mesh file")
@click.option("--json", "-j", "json_output", is_flag=True, help="Output as JSON")
@click.option("--unit-scale", type=float,
              help="Factor converting mesh units to mm (inferred if omitted)")
@click.option("--print-size", type=float,
              help="Scale the largest dimension to this size before analyzing")
@click.option("--exclude-build-plate", is_flag=True,
              help="Ignore downward faces resting on the build plate")
@click.option("--verbose", "-v", is_flag=True, help="Enable verbose logging")
def analyze(
    input_path: str,
    json_output: bool,
    unit_scale: Optional[float],
    print_size: Optional[float],
    exclude_build_plate: bool,
    verbose: bool
):
    """
    Analyze a mesh for 3D printing.

    Examples:

        reliefmesh analyze --input model.stl

        reliefmesh analyze -i model.stl --json --exclude-build-plate

        reliefmesh analyze -i model.obj --print-size 100
    """
    setup_logging(verbose)

    input_path = Path(input_path)

    if not json_output:
        click.echo(f"Loading: {input_path}")
    try:
        mesh = load_mesh(input_path)
    except (FileNotFoundError, ValueError) as e:
        click.echo(f"Error loading mesh: {e}")
        sys.exit(1)

    try:
        transform = print_scale_transform(mesh, print_size) if print_size else None
        analysis = analyze_mesh(
            mesh,
            transform=transform,
            unit_scale=unit_scale,
            exclude_build_plate=exclude_build_plate,
        )
    except ReliefMeshError as e:
        click.echo(f"Analysis failed: {e}")
        sys.exit(1)

    if json_output:
        output = analysis.to_dict()
        output["support"] = recommend_support_config(analysis).to_dict()
        output["recommendations"] = support_recommendations(analysis)
        click.echo(json.dumps(output, indent=2))
        return

    click.echo(format_analysis(analysis, f"Print Analysis: {input_path.name}"))
    _echo_tips(analysis)

    if not mesh.is_closed_manifold():
        click.echo(
            f"\n⚠ Mesh is not closed ({mesh.boundary_edge_count} boundary edges); "
            "volume may be inaccurate."
        )


@main.command()
def checkenv():
    """
    Check if the environment is set up correctly.

    Verifies that all required dependencies are installed.
    """
    click.echo("ReliefMesh Environment Check")
    click.echo("=" * 50)

    import platform
    py_version = platform.python_version()
    click.echo(f"\nPython: {py_version}")

    major, minor = sys.version_info[:2]
    if major == 3 and minor >= 11:
        click.echo("  ✓ Python version is compatible")
    else:
        click.echo("  ⚠ Python 3.11 or newer required")

    click.echo("\nCore Dependencies:")

    try:
        import numpy
        click.echo(f"  ✓ numpy: {numpy.__version__}")
    except ImportError:
        click.echo("  ✗ numpy: NOT INSTALLED")

    try:
        import scipy
        click.echo(f"  ✓ scipy: {scipy.__version__}")
    except ImportError:
        click.echo("  ✗ scipy: NOT INSTALLED")

    try:
        import trimesh
        click.echo(f"  ✓ trimesh: {trimesh.__version__}")
    except ImportError:
        click.echo("  ✗ trimesh: NOT INSTALLED")

    try:
        import PIL
        click.echo(f"  ✓ Pillow: {PIL.__version__}")
    except ImportError:
        click.echo("  ✗ Pillow: NOT INSTALLED (depth maps limited to .npy)")

    click.echo("\n" + "=" * 50)
    click.echo("Environment check complete.")


if __name__ == "__main__":
    main()
