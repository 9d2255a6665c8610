import tempfile
import unittest
from pathlib import Path

import numpy as np

from tests._test_path import SRC  # noqa: F401  (ensures src on path)
from tests._images import StubLocator, canvas, jpeg_bytes, png_bytes, portrait, region

from dvphoto.core.config import ValidationConfig
from dvphoto.core.errors import FormatError, UnsupportedFormatError
from dvphoto.imaging.decoder import decode_image
from dvphoto.imaging.enhancer import enhance_bytes
from dvphoto.validation.validator import validate_bytes, validate_file, validate_image

BASIC_CODES = {"invalid_dimensions", "wrong_format", "file_too_large", "file_too_small"}


def _all_codes(result):
    return result.error_codes + result.warning_codes


class TestValidateScenarios(unittest.TestCase):
    def test_compliant_photo(self):
        arr, box = portrait(ratio=0.60, background=205)
        data = jpeg_bytes(arr)
        result = validate_bytes(data, "jpg", locator=StubLocator([region(box)]))

        self.assertEqual(result.errors, ())
        self.assertTrue(result.is_valid)
        self.assertGreaterEqual(result.score, 80)
        self.assertAlmostEqual(result.details["face"]["faceRatio"], 0.60, places=2)
        self.assertGreaterEqual(result.details["background"]["avgBrightness"], 180)
        self.assertLessEqual(result.details["background"]["variance"], 1000)
        self.assertTrue(80 <= result.details["lighting"]["avgBrightness"] <= 220)
        self.assertEqual(result.status_message, "Photo meets all DV requirements")

    def test_wrong_dimensions(self):
        arr, box = portrait(width=400, height=400)
        result = validate_bytes(jpeg_bytes(arr), "jpg", locator=StubLocator([region(box)]))
        self.assertIn("invalid_dimensions", result.error_codes)
        self.assertFalse(result.is_valid)
        self.assertEqual(result.details["dimensions"]["width"], 400)
        self.assertFalse(result.details["dimensions"]["isValid"])

    def test_multiple_faces(self):
        arr, box = portrait()
        other = (10, 10, 110, 130)
        result = validate_bytes(
            jpeg_bytes(arr), "jpg", locator=StubLocator([region(other, 0.8), region(box, 0.9)])
        )
        self.assertIn("multiple_faces", result.error_codes)
        self.assertFalse(result.is_valid)
        # the strongest candidate still drives framing
        self.assertAlmostEqual(result.details["face"]["faceRatio"], 0.60, places=2)
        self.assertEqual(result.details["face"]["faceCount"], 2)

    def test_dark_background(self):
        arr, box = portrait(background=120)
        result = validate_bytes(jpeg_bytes(arr), "jpg", locator=StubLocator([region(box)]))
        self.assertIn("background_not_plain", result.warning_codes)
        self.assertLess(result.details["background"]["avgBrightness"], 180)
        self.assertGreaterEqual(result.details["score"]["background"]["penalty"], 0.5)
        self.assertLessEqual(result.details["score"]["background"]["contribution"], 10.0)

    def test_baby_mode_widens_face_band(self):
        arr, box = portrait(ratio=0.45)
        data = jpeg_bytes(arr)
        locator = StubLocator([region(box)])

        adult = validate_bytes(data, "jpg", config=ValidationConfig.adult(), locator=locator)
        baby = validate_bytes(data, "jpg", config=ValidationConfig.for_mode(baby=True), locator=locator)

        self.assertIn("face_too_small", adult.error_codes)
        self.assertFalse(adult.is_valid)
        self.assertNotIn("face_too_small", _all_codes(baby))
        self.assertEqual(baby.details["mode"], "baby")

    def test_no_face(self):
        arr, _box = portrait()
        result = validate_bytes(jpeg_bytes(arr), "jpg", locator=StubLocator([]))
        self.assertIn("no_face_detected", result.error_codes)
        self.assertIsNone(result.details["face"]["faceRatio"])
        self.assertEqual(result.details["background"]["source"], "margin_band")
        self.assertFalse(result.is_valid)

    def test_every_stage_runs(self):
        data = png_bytes(canvas(400, 300, value=120))
        result = validate_bytes(data, "png", locator=StubLocator([]))
        self.assertEqual(
            result.error_codes[:4], ["invalid_dimensions", "file_too_small", "wrong_format", "no_face_detected"]
        )
        self.assertIn("background_not_plain", result.warning_codes)
        for key in ("dimensions", "fileSize", "format", "face", "background", "lighting", "shadows", "quality"):
            self.assertIn(key, result.details)

    def test_compliant_basics_never_fire(self):
        arr, box = portrait()
        result = validate_bytes(jpeg_bytes(arr), "jpeg", locator=StubLocator([region(box)]))
        self.assertTrue(BASIC_CODES.isdisjoint(_all_codes(result)))

    def test_default_locator_finds_drawn_face(self):
        arr, _box = portrait(ratio=0.55)
        result = validate_bytes(jpeg_bytes(arr), "jpg")
        self.assertEqual(result.details["face"]["method"], "skin")
        self.assertEqual(result.details["face"]["faceCount"], 1)
        self.assertAlmostEqual(result.details["face"]["faceRatio"], 0.55, delta=0.05)


class TestValidateProperties(unittest.TestCase):
    def test_idempotent(self):
        arr, box = portrait(ratio=0.58)
        data = jpeg_bytes(arr)
        locator = StubLocator([region(box)])
        first = validate_bytes(data, "jpg", locator=locator)
        second = validate_bytes(data, "jpg", locator=locator)

        self.assertEqual(first.score, second.score)
        self.assertEqual(first.is_valid, second.is_valid)
        self.assertEqual([f.to_dict() for f in first.errors], [f.to_dict() for f in second.errors])
        self.assertEqual([f.to_dict() for f in first.warnings], [f.to_dict() for f in second.warnings])
        self.assertEqual(first.details, second.details)

    def test_score_bounds_and_validity(self):
        rng = np.random.default_rng(7)
        for i, (w, h) in enumerate([(600, 600), (320, 480), (640, 600)]):
            arr = rng.integers(0, 256, size=(h, w, 3), dtype=np.uint8)
            faces = [] if i == 0 else [region((w * 0.2, h * 0.2, w * 0.8, h * 0.8), 0.9)]
            result = validate_bytes(jpeg_bytes(arr, quality=85), "jpg", locator=StubLocator(faces))
            self.assertGreaterEqual(result.score, 0.0)
            self.assertLessEqual(result.score, 100.0)
            if result.is_valid:
                self.assertEqual(result.errors, ())

    def test_enhanced_output_passes_basic_checks(self):
        arr, _box = portrait(width=900, height=750)
        data = enhance_bytes(jpeg_bytes(arr, quality=90), "jpg")
        out = decode_image(data, "jpg")
        box = (out.width * 0.2, out.height * 0.2, out.width * 0.8, out.height * 0.8)
        result = validate_bytes(data, "jpg", locator=StubLocator([region(box)]))
        self.assertNotIn("invalid_dimensions", _all_codes(result))
        self.assertNotIn("wrong_format", _all_codes(result))

    def test_validate_image_calls_locator_once(self):
        arr, box = portrait()
        locator = StubLocator([region(box)])
        validate_image(decode_image(jpeg_bytes(arr), "jpg"), locator=locator)
        self.assertEqual(locator.calls, 1)


class TestValidateInputs(unittest.TestCase):
    def test_validate_file(self):
        arr, box = portrait()
        with tempfile.TemporaryDirectory() as d:
            p = Path(d) / "dv.jpg"
            p.write_bytes(jpeg_bytes(arr))
            result = validate_file(p, locator=StubLocator([region(box)]))
        self.assertEqual(result.image_path, str(p))
        self.assertEqual(result.details["format"]["declaredExtension"], "jpg")

    def test_strict_format_aborts(self):
        config = ValidationConfig(strict_format=True)
        with self.assertRaises(UnsupportedFormatError):
            validate_bytes(png_bytes(canvas()), "png", config=config, locator=StubLocator([]))

    def test_garbage_aborts(self):
        locator = StubLocator([])
        with self.assertRaises(FormatError):
            validate_bytes(b"\xff\xd8 not really a jpeg", "jpg", locator=locator)
        self.assertEqual(locator.calls, 0)
