from __future__ import annotations

import argparse
import json
import logging
import os
import sys
import time
from pathlib import Path
from typing import Any, Dict, List, Optional, Sequence

from .config import DetectorConfig, config_overrides_from_json
from .errors import BoxkitError
from .labels import load_class_labels
from .logging_setup import setup_logging


logger = logging.getLogger("boxkit")

# argparse dest -> DetectorConfig field
_CONFIG_FIELDS = {
    "con": "confidence_threshold",
    "nms": "nms_iou_threshold",
    "ver": "model_family",
    "input_side": "input_side",
    "num_classes": "num_classes",
    "nms_keep": "nms_keep",
    "max_detections": "max_detections",
}


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="boxkit",
        # collect_cli_dests only recognizes full option strings.
        allow_abbrev=False,
        description="YOLO object detection on one image, or as an HTTP service.",
    )
    parser.add_argument("-m", "--model", default="./best.onnx", help="Path to the ONNX model.")
    parser.add_argument("-p", "--image", default="./test.jpg", help="Image to run in local mode.")
    parser.add_argument("-c", "--classes", default="./classes.txt", help="Class label file, one label per line.")
    parser.add_argument("--con", type=float, default=0.6, help="Confidence threshold.")
    parser.add_argument("--nms", type=float, default=0.5, help="IoU threshold for NMS.")
    parser.add_argument(
        "--ver",
        default="v8",
        help="Model family: v5/anchor_based (N x 5+C output) or v8/anchor_free (4+C x N output).",
    )
    parser.add_argument("--input-side", type=int, default=640, help="Square model input size.")
    parser.add_argument("--num-classes", type=int, default=None, help="Override the class count of the model.")
    parser.add_argument(
        "--nms-keep",
        choices=["highest", "lowest"],
        default="highest",
        help="Box kept per overlap cluster: highest confidence, or lowest (legacy behavior).",
    )
    parser.add_argument("--max-detections", type=int, default=None, help="Cap on returned detections.")
    parser.add_argument(
        "--providers",
        default=None,
        help='Comma-separated ORT providers, e.g. "CUDAExecutionProvider,CPUExecutionProvider".',
    )
    parser.add_argument("--config", default=None, help="JSON detector config; explicit flags override it.")
    parser.add_argument("-l", "--local", action="store_true", help="Run once on --image and print the result.")
    parser.add_argument("--out", default=None, help="Local mode: save an annotated copy of the image here.")
    parser.add_argument("--host", default="0.0.0.0", help="Server bind address.")
    parser.add_argument("--port", type=int, default=8080, help="Server port.")
    parser.add_argument(
        "--index-html",
        default=os.environ.get("BOXKIT_INDEX_HTML"),
        help="Page served at / (defaults to the bundled upload page).",
    )
    parser.add_argument("--log-level", default="INFO", help="Logging level.")
    parser.add_argument("--log-file", default=None, help="Optional log file path.")
    return parser


def collect_cli_dests(parser: argparse.ArgumentParser, argv: Sequence[str]) -> set[str]:
    dests: set[str] = set()
    for opt, action in parser._option_string_actions.items():
        for arg in argv:
            if arg == opt or arg.startswith(f"{opt}="):
                dests.add(action.dest)
                break
    return dests


def build_config(args: argparse.Namespace, cli_dests: set[str]) -> DetectorConfig:
    """
    Merge defaults, the optional JSON config and explicit CLI flags (highest priority).
    """

    kwargs: Dict[str, Any] = {field: getattr(args, dest) for dest, field in _CONFIG_FIELDS.items()}
    from_file: Dict[str, Any] = config_overrides_from_json(args.config) if args.config else {}
    for dest, field in _CONFIG_FIELDS.items():
        if field in from_file and dest not in cli_dests:
            kwargs[field] = from_file[field]
    if "num_predictions" in from_file:
        kwargs["num_predictions"] = from_file["num_predictions"]

    if "class_labels" in from_file and "classes" not in cli_dests:
        kwargs["class_labels"] = from_file["class_labels"]
    else:
        kwargs["class_labels"] = tuple(load_class_labels(args.classes))
    return DetectorConfig(**kwargs)


def _run_local(detector: Any, args: argparse.Namespace) -> int:
    image_path = Path(args.image)
    if not image_path.exists():
        logger.error("Image not found: %s", image_path)
        return 1

    t0 = time.perf_counter()
    detections = detector.detect(image_path.read_bytes())
    logger.info("total elapsed: %.1f ms", (time.perf_counter() - t0) * 1000.0)
    print(json.dumps([d.as_row() for d in detections]))

    if args.out:
        import cv2  # type: ignore

        from .preprocess import decode_image
        from .visualize import draw_detections

        vis = draw_detections(decode_image(image_path.read_bytes()), detections)
        if not cv2.imwrite(args.out, vis):
            logger.error("Failed to write output image: %s", args.out)
            return 1
    return 0


def _serve(detector: Any, args: argparse.Namespace) -> int:
    import uvicorn

    from .server import create_app

    logger.info("Serving on http://%s:%d", args.host, args.port)
    uvicorn.run(create_app(detector, index_html=args.index_html), host=args.host, port=args.port, log_level="info")
    return 0


def main(argv: Optional[List[str]] = None) -> int:
    parser = build_parser()
    argv = list(sys.argv[1:] if argv is None else argv)
    args = parser.parse_args(argv)
    setup_logging(args.log_level, args.log_file)

    from .runtime import load_detector

    try:
        cfg = build_config(args, collect_cli_dests(parser, argv))
        providers = None
        if args.providers:
            providers = [p.strip() for p in str(args.providers).split(",") if p.strip()]
        detector = load_detector(args.model, cfg, providers=providers)
        if args.local:
            return _run_local(detector, args)
    except BoxkitError as exc:
        logger.error("%s: %s", type(exc).__name__, exc)
        return 1
    return _serve(detector, args)


if __name__ == "__main__":
    raise SystemExit(main())
