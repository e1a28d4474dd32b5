import json
import tempfile
import unittest
from pathlib import Path

from boxkit.config import DetectorConfig, default_num_predictions, load_detector_config
from boxkit.errors import InvalidConfig
from boxkit.labels import load_class_labels
from boxkit.layout import ModelFamily
from boxkit.nms import NmsKeep


COCO_LIKE = tuple(f"class_{i}" for i in range(80))


class TestDetectorConfig(unittest.TestCase):
    def test_defaults(self) -> None:
        cfg = DetectorConfig(class_labels=COCO_LIKE)
        self.assertIs(cfg.model_family, ModelFamily.ANCHOR_FREE)
        self.assertEqual(cfg.resolved_num_classes, 80)
        self.assertEqual(cfg.resolved_num_predictions, 8400)
        self.assertEqual(cfg.output_shape, (1, 84, 8400))
        self.assertIs(cfg.nms_keep, NmsKeep.HIGHEST)

    def test_anchor_based_takes_class_count_from_labels(self) -> None:
        cfg = DetectorConfig(model_family="v5", class_labels=("a", "b"))
        self.assertEqual(cfg.resolved_num_classes, 2)
        self.assertEqual(cfg.resolved_num_predictions, 25200)
        self.assertEqual(cfg.output_shape, (1, 25200, 7))

    def test_default_num_predictions_follows_input_side(self) -> None:
        self.assertEqual(default_num_predictions(ModelFamily.ANCHOR_FREE, 320), 2100)
        self.assertEqual(default_num_predictions(ModelFamily.ANCHOR_BASED, 320), 6300)

    def test_zero_classes(self) -> None:
        with self.assertRaises(InvalidConfig):
            DetectorConfig(model_family=ModelFamily.ANCHOR_BASED, class_labels=())

    def test_too_few_labels(self) -> None:
        with self.assertRaises(InvalidConfig):
            DetectorConfig(class_labels=("a", "b"))
        cfg = DetectorConfig(class_labels=("a", "b"), num_classes=2)
        self.assertEqual(cfg.resolved_num_classes, 2)

    def test_threshold_ranges(self) -> None:
        for bad in (0.0, -0.1, 1.5):
            with self.assertRaises(InvalidConfig):
                DetectorConfig(class_labels=COCO_LIKE, confidence_threshold=bad)
            with self.assertRaises(InvalidConfig):
                DetectorConfig(class_labels=COCO_LIKE, nms_iou_threshold=bad)

    def test_unknown_family_and_keep(self) -> None:
        with self.assertRaises(InvalidConfig):
            DetectorConfig(class_labels=COCO_LIKE, model_family="v3")
        with self.assertRaises(InvalidConfig):
            DetectorConfig(class_labels=COCO_LIKE, nms_keep="middle")

    def test_invalid_config_is_value_error(self) -> None:
        with self.assertRaises(ValueError):
            DetectorConfig(class_labels=COCO_LIKE, input_side=0)

    def test_frozen(self) -> None:
        cfg = DetectorConfig(class_labels=COCO_LIKE)
        with self.assertRaises(AttributeError):
            cfg.confidence_threshold = 0.1  # type: ignore[misc]


class TestConfigFiles(unittest.TestCase):
    def setUp(self) -> None:
        self._tmp = tempfile.TemporaryDirectory()
        self.tmp = Path(self._tmp.name)

    def tearDown(self) -> None:
        self._tmp.cleanup()

    def test_load_class_labels(self) -> None:
        path = self.tmp / "classes.txt"
        path.write_text("person\n  bicycle \n\ncar\n\n\n", encoding="utf-8")
        self.assertEqual(load_class_labels(path), ["person", "bicycle", "", "car"])

    def test_missing_label_file(self) -> None:
        with self.assertRaises(InvalidConfig):
            load_class_labels(self.tmp / "missing.txt")

    def test_load_detector_config_with_classes_path(self) -> None:
        (self.tmp / "classes.txt").write_text("cat\ndog\n", encoding="utf-8")
        path = self.tmp / "detector.json"
        path.write_text(
            json.dumps(
                {
                    "model_family": "v5",
                    "classes_path": "classes.txt",
                    "confidence_threshold": 0.4,
                    "nms_keep": "lowest",
                }
            ),
            encoding="utf-8",
        )
        cfg = load_detector_config(path)
        self.assertEqual(cfg.class_labels, ("cat", "dog"))
        self.assertEqual(cfg.resolved_num_classes, 2)
        self.assertEqual(cfg.confidence_threshold, 0.4)
        self.assertIs(cfg.nms_keep, NmsKeep.LOWEST)

    def test_unknown_keys_rejected(self) -> None:
        path = self.tmp / "detector.json"
        path.write_text(json.dumps({"conf": 0.5}), encoding="utf-8")
        with self.assertRaises(InvalidConfig):
            load_detector_config(path, class_labels=COCO_LIKE)

    def test_type_errors_rejected(self) -> None:
        path = self.tmp / "detector.json"
        path.write_text(json.dumps({"input_side": "640"}), encoding="utf-8")
        with self.assertRaises(InvalidConfig):
            load_detector_config(path, class_labels=COCO_LIKE)

    def test_invalid_json(self) -> None:
        path = self.tmp / "detector.json"
        path.write_text("{", encoding="utf-8")
        with self.assertRaises(InvalidConfig):
            load_detector_config(path)


if __name__ == "__main__":
    unittest.main()
