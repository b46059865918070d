# Copyright 2025 Allard Peper (Dragon Ace / DragonAceNL)
# Licensed under the Apache License, Version 2.0 (see LICENSE).

"""ReliefMesh - Depth-to-solid reconstruction and print analysis for triangle meshes."""

__version__ = "0.1.0"
