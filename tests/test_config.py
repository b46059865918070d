# Copyright 2025 Allard Peper (Dragon Ace / DragonAceNL)
# Licensed under the Apache License, Version 2.0 (see LICENSE).

"""Test reconstruction parameters and cancellation tokens."""

import json

import pytest

from reliefmesh.core import (
    CancellationToken,
    InvalidParameterError,
    OperationCancelledError,
    ReconstructionParams,
)


class TestReconstructionParams:
    """Test parameter defaults, clamping and loading."""

    def test_defaults(self):
        """Resolution 3, depth scale 3.0, smoothness 0.5."""
        params = ReconstructionParams()

        assert params.to_dict() == {"resolution": 3, "depth_scale": 3.0, "smoothness": 0.5}
        params.validate()

    def test_from_dict_clamps(self):
        """Out-of-range values are clamped into range."""
        params = ReconstructionParams.from_dict(
            {"resolution": 0, "depth_scale": 50, "smoothness": -1}
        )

        assert params.resolution == 1
        assert params.depth_scale == 10.0
        assert params.smoothness == 0.0

    def test_from_dict_garbage_uses_defaults(self):
        """Unparseable and missing values fall back to defaults."""
        params = ReconstructionParams.from_dict({"resolution": "abc", "depth_scale": None})

        assert params == ReconstructionParams()

    def test_from_dict_rounds_resolution(self):
        """Fractional resolutions round to an integer."""
        assert ReconstructionParams.from_dict({"resolution": 4.6}).resolution == 5

    def test_from_dict_nan(self):
        """NaN falls back to the default."""
        params = ReconstructionParams.from_dict({"smoothness": float("nan")})
        assert params.smoothness == 0.5

    @pytest.mark.parametrize("kwargs", [
        {"resolution": 0},
        {"depth_scale": 0.0},
        {"smoothness": 1.5},
    ])
    def test_validate_rejects(self, kwargs):
        """validate() raises on any out-of-range value."""
        with pytest.raises(InvalidParameterError):
            ReconstructionParams(**kwargs).validate()

    def test_invalid_parameter_is_value_error(self):
        """Callers may catch ValueError."""
        with pytest.raises(ValueError):
            ReconstructionParams(resolution=-2).validate()

    def test_load_json(self, tmp_path):
        """Parameters load from a JSON file."""
        path = tmp_path / "params.json"
        path.write_text(json.dumps({"resolution": 2, "depth_scale": 1.5}))

        params = ReconstructionParams.load(path)

        assert params.resolution == 2
        assert params.depth_scale == 1.5
        assert params.smoothness == 0.5

    def test_load_non_object(self, tmp_path):
        """A JSON file must hold an object."""
        path = tmp_path / "params.json"
        path.write_text("[1, 2, 3]")

        with pytest.raises(InvalidParameterError):
            ReconstructionParams.load(path)


class TestCancellationToken:
    """Test cooperative cancellation."""

    def test_fresh_token_not_cancelled(self):
        """A new token without deadline never fires on its own."""
        token = CancellationToken()

        assert not token.cancelled
        token.raise_if_cancelled()

    def test_cancel(self):
        """cancel() makes raise_if_cancelled raise."""
        token = CancellationToken()
        token.cancel()

        assert token.cancelled
        with pytest.raises(OperationCancelledError, match="smoothing cancelled"):
            token.raise_if_cancelled("smoothing")

    def test_deadline(self):
        """A zero deadline is already expired."""
        token = CancellationToken(deadline_s=0.0)

        assert token.expired
        with pytest.raises(OperationCancelledError, match="deadline"):
            token.raise_if_cancelled()
