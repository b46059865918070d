# Copyright 2025 Allard Peper (Dragon Ace / DragonAceNL)
# Licensed under the Apache License, Version 2.0 (see LICENSE).

"""Test the indexed mesh value type and file I/O."""

import numpy as np
import pytest
from PIL import Image

from reliefmesh.core import (
    IndexedMesh,
    analyze,
    format_analysis,
    load_depth,
    load_mask,
    load_mesh,
    save_mesh,
)


class TestIndexedMesh:
    """Test construction and topology queries."""

    def test_flat_buffers_reshaped(self):
        """Flat position and index buffers are accepted."""
        mesh = IndexedMesh(positions=[0, 0, 0, 1, 0, 0, 0, 1, 0], faces=[0, 1, 2])

        assert mesh.positions.shape == (3, 3)
        assert mesh.faces.shape == (1, 3)
        assert mesh.indices.tolist() == [0, 1, 2]

    def test_out_of_range_index(self):
        """Indices must reference existing vertices."""
        with pytest.raises(ValueError):
            IndexedMesh(positions=np.zeros((3, 3)), faces=[[0, 1, 3]])

    def test_arrays_read_only(self, box_mesh):
        """Mesh buffers cannot be modified in place."""
        with pytest.raises(ValueError):
            box_mesh.positions[0, 0] = 1.0

    def test_box_is_closed(self, box_mesh):
        """A trimesh box is closed with 18 edges."""
        edges, counts = box_mesh.edge_face_counts()

        assert len(edges) == 18
        assert box_mesh.is_closed_manifold()
        assert box_mesh.boundary_edge_count == 0

    def test_open_mesh(self, triangle_mesh):
        """A single triangle has three boundary edges."""
        assert triangle_mesh.boundary_edge_count == 3
        assert not triangle_mesh.is_closed_manifold()

    def test_empty(self):
        """An empty mesh has no vertices and is not closed."""
        mesh = IndexedMesh.empty()

        assert mesh.is_empty
        assert not mesh.is_closed_manifold()

    def test_with_normals(self, triangle_mesh):
        """Normals follow the winding."""
        mesh = triangle_mesh.with_normals()
        assert np.allclose(mesh.normals, [0.0, 0.0, 1.0])

    def test_trimesh_round_trip_keeps_order(self, box_mesh):
        """Conversion to trimesh neither merges nor reorders vertices."""
        converted = IndexedMesh.from_trimesh(box_mesh.to_trimesh())

        assert np.array_equal(converted.positions, box_mesh.positions)
        assert np.array_equal(converted.faces, box_mesh.faces)


class TestMeshFiles:
    """Test mesh load and save through trimesh."""

    def test_save_and_load_stl(self, box_mesh, tmp_path):
        """An exported STL reloads as a closed box."""
        path = tmp_path / "out" / "box.stl"
        save_mesh(box_mesh, path)
        loaded = load_mesh(path)

        assert path.exists()
        assert loaded.face_count == 12
        assert loaded.is_closed_manifold()
        assert analyze(loaded).volume == pytest.approx(1000.0)

    def test_missing_file(self, tmp_path):
        """Missing files raise FileNotFoundError."""
        with pytest.raises(FileNotFoundError):
            load_mesh(tmp_path / "nope.stl")

    def test_unreadable_file(self, tmp_path):
        """Garbage raises ValueError."""
        path = tmp_path / "bad.stl"
        path.write_bytes(b"not a mesh")
        with pytest.raises(ValueError):
            load_mesh(path)


class TestImageFiles:
    """Test depth map and mask loading."""

    def test_npy_depth(self, tmp_path):
        """.npy arrays in [0, 1] load unchanged."""
        path = tmp_path / "depth.npy"
        depth = np.linspace(0.0, 1.0, 12).reshape((3, 4))
        np.save(path, depth)

        assert np.allclose(load_depth(path), depth)

    def test_npy_out_of_range_rescaled(self, tmp_path):
        """Values outside [0, 1] are rescaled."""
        path = tmp_path / "depth.npy"
        np.save(path, np.array([[0.0, 5.0], [10.0, 2.5]]))

        assert np.allclose(load_depth(path), [[0.0, 0.5], [1.0, 0.25]])

    def test_greyscale_png(self, tmp_path):
        """8-bit images are divided by 255."""
        path = tmp_path / "depth.png"
        pixels = np.array([[0, 255], [51, 102]], dtype=np.uint8)
        Image.fromarray(pixels).save(path)

        assert np.allclose(load_depth(path), pixels / 255.0)

    def test_color_depth_converted(self, tmp_path):
        """RGB depth images are converted to greyscale."""
        path = tmp_path / "depth.png"
        Image.new("RGB", (5, 3), (255, 255, 255)).save(path)
        depth = load_depth(path)

        assert depth.shape == (3, 5)
        assert np.allclose(depth, 1.0)

    def test_mask_rgba(self, tmp_path):
        """Masks load as (H, W, 4) uint8."""
        path = tmp_path / "mask.png"
        Image.new("RGBA", (4, 2), (10, 20, 30, 0)).save(path)
        mask = load_mask(path)

        assert mask.shape == (2, 4, 4)
        assert mask.dtype == np.uint8
        assert np.all(mask[:, :, 3] == 0)

    def test_mask_without_alpha_is_opaque(self, tmp_path):
        """RGB masks become fully opaque."""
        path = tmp_path / "mask.png"
        Image.new("RGB", (3, 3), (0, 0, 0)).save(path)
        assert np.all(load_mask(path)[:, :, 3] == 255)


class TestFormatAnalysis:
    """Test the text report."""

    def test_format(self, box_mesh):
        """The report names the key metrics."""
        text = format_analysis(analyze(box_mesh), "Box")

        assert "Box" in text
        assert "Volume: 1000.00 cm³" in text
        assert "Difficulty: easy" in text
