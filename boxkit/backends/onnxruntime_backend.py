from __future__ import annotations

import logging
import threading
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Optional, Sequence, Union

import numpy as np

from ..errors import InferenceFailure


PathLike = Union[str, Path]

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class OnnxRuntimeBackendConfig:
    """
    Session settings for `OnnxRuntimeEngine.load`.

    `providers` is tried in order; None lets ORT fall back to its own default list.
    `input_name` and `output_name` pin the tensors to feed and read. When unset the
    first graph input and the first graph output are used.
    """

    providers: Optional[Sequence[str]] = None
    input_name: Optional[str] = None
    output_name: Optional[str] = None


@dataclass
class OnnxRuntimeHandle:
    """
    A loaded ONNX model. `lock` allows one inference call in flight per session.
    """

    model_path: Path
    session: Any
    input_name: str
    output_name: str
    lock: threading.Lock = field(default_factory=threading.Lock, repr=False)

    @property
    def providers_in_use(self) -> Sequence[str]:
        # ORT returns providers in priority order for this session.
        return tuple(self.session.get_providers())


class OnnxRuntimeEngine:
    """
    Minimal ONNX Runtime engine.

    Expects an NCHW float32 blob shaped (1, 3, S, S) and returns the primary
    output as a NumPy array.
    """

    def __init__(self, cfg: OnnxRuntimeBackendConfig = OnnxRuntimeBackendConfig()):
        try:
            import onnxruntime as ort  # type: ignore
        except Exception as e:  # pragma: no cover
            raise ImportError(
                "onnxruntime is required for the ONNX backend. Install it with `pip install onnxruntime` "
                "(or `onnxruntime-gpu`)."
            ) from e

        self._ort = ort
        self.cfg = cfg

    @property
    def available_providers(self) -> Sequence[str]:
        return tuple(self._ort.get_available_providers())

    def load(self, model: PathLike) -> OnnxRuntimeHandle:
        model_path = Path(model)
        if not model_path.exists():
            raise InferenceFailure(f"Model file not found: {model_path}")

        ort = self._ort
        sess_opts = ort.SessionOptions()
        # ERROR keeps ORT's own graph-optimization chatter out of the service log.
        sess_opts.log_severity_level = 3
        providers = list(self.cfg.providers) if self.cfg.providers is not None else None
        try:
            session = ort.InferenceSession(str(model_path), sess_options=sess_opts, providers=providers)
        except Exception as exc:
            raise InferenceFailure(f"Failed to create ONNX Runtime session for {model_path}: {exc}") from exc

        # If input/output names are not provided, pick the first of each.
        input_name = self.cfg.input_name or session.get_inputs()[0].name
        output_name = self.cfg.output_name or session.get_outputs()[0].name
        handle = OnnxRuntimeHandle(
            model_path=model_path,
            session=session,
            input_name=input_name,
            output_name=output_name,
        )
        logger.info(
            "Loaded %s (input=%s, output=%s, providers=%s)",
            model_path,
            input_name,
            output_name,
            ",".join(handle.providers_in_use),
        )
        return handle

    def run(self, handle: OnnxRuntimeHandle, tensor: np.ndarray) -> np.ndarray:
        with handle.lock:
            try:
                outputs = handle.session.run([handle.output_name], {handle.input_name: tensor})
            except Exception as exc:
                raise InferenceFailure(f"ONNX Runtime inference failed: {exc}") from exc
        return outputs[0]
