"""
FastAPI application for the detection service.

Routes:
- GET /          -> upload page
- POST /detect   -> multipart `image_file` -> [[x1, y1, x2, y2, label, confidence], ...]
- GET /healthz   -> model summary
"""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Any, Dict, List, Optional, Union

from fastapi import FastAPI, File, HTTPException, UploadFile
from fastapi.responses import FileResponse, HTMLResponse

from .errors import InferenceFailure, InvalidImage, LayoutMismatch
from .runtime import Detector


logger = logging.getLogger(__name__)

DEFAULT_INDEX_HTML = Path(__file__).resolve().parent / "static" / "index.html"


def create_app(detector: Detector, index_html: Optional[Union[str, Path]] = None) -> FastAPI:
    """Create the FastAPI app around a loaded detector."""
    app = FastAPI(
        title="boxkit",
        version="0.1.0",
        description="Single-image YOLO object detection",
    )
    index_path = Path(index_html) if index_html else DEFAULT_INDEX_HTML

    @app.get("/", response_class=HTMLResponse)
    def index():
        if not index_path.exists():
            raise HTTPException(status_code=404, detail=f"Index page not found: {index_path}")
        return FileResponse(index_path, media_type="text/html")

    @app.get("/healthz")
    def healthz() -> Dict[str, Any]:
        cfg = detector.cfg
        return {
            "status": "ok",
            "model_family": cfg.model_family.value,
            "num_classes": cfg.resolved_num_classes,
            "input_side": cfg.input_side,
        }

    # Sync endpoint: FastAPI runs it in its threadpool, the engine serializes inference per handle.
    @app.post("/detect")
    def detect(image_file: UploadFile = File(...)) -> List[List[Any]]:
        data = image_file.file.read()
        try:
            detections = detector.detect(data)
        except InvalidImage as exc:
            logger.warning("Rejected upload %r: %s", image_file.filename, exc)
            raise HTTPException(status_code=400, detail=str(exc)) from exc
        except (LayoutMismatch, InferenceFailure) as exc:
            logger.error("Detection failed for %r: %s", image_file.filename, exc)
            raise HTTPException(status_code=500, detail=str(exc)) from exc
        return [d.as_row() for d in detections]

    return app
