"""
Inference engine boundary.

The orchestrator only needs two capabilities from an engine: load a model into
a handle, and run one input tensor through that handle. Handles are shared
between requests; engines that cannot run concurrently on one handle serialize
`run` themselves.
"""

from __future__ import annotations

from typing import Any, Protocol

import numpy as np


class InferenceEngine(Protocol):
    def load(self, model: Any) -> Any:
        ...

    def run(self, handle: Any, tensor: np.ndarray) -> np.ndarray:
        ...
