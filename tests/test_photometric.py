import unittest

import numpy as np

from tests._test_path import SRC  # noqa: F401  (ensures src on path)
from tests._images import canvas, region

from dvphoto.core.config import ValidationConfig
from dvphoto.core.models import ImageBuffer
from dvphoto.validation.photometric import (
    background_mask,
    compute_stats,
    evaluate_photometrics,
    margin_band_mask,
    sharpness,
)


def _codes(outcomes):
    return [f.code for o in outcomes for f in o.findings]


class TestBackgroundMask(unittest.TestCase):
    def setUp(self):
        self.config = ValidationConfig()

    def test_margin_band(self):
        mask = margin_band_mask(600, 600, 0.05)
        self.assertTrue(mask[0, 300])
        self.assertTrue(mask[300, 29])
        self.assertFalse(mask[300, 30])
        self.assertFalse(mask[300, 300])

    def test_margin_band_minimum_width(self):
        mask = margin_band_mask(100, 100, 0.05)
        self.assertTrue(mask[50, 9])
        self.assertFalse(mask[50, 10])

    def test_face_excluded(self):
        mask, source = background_mask(600, 600, region((100, 100, 500, 500)), self.config)
        self.assertEqual(source, "face_excluded")
        self.assertTrue(mask[0, 0])
        self.assertTrue(mask[300, 10])
        self.assertFalse(mask[300, 300])
        self.assertFalse(mask[70, 70])  # inside the padding
        self.assertFalse(mask[580, 10])  # torso area below the face

    def test_face_filling_frame_falls_back(self):
        _mask, source = background_mask(600, 600, region((0, 0, 600, 600)), self.config)
        self.assertEqual(source, "margin_band")

    def test_no_face(self):
        _mask, source = background_mask(600, 600, None, self.config)
        self.assertEqual(source, "margin_band")


class TestPhotometrics(unittest.TestCase):
    def setUp(self):
        self.config = ValidationConfig()

    def test_stage_order(self):
        _stats, outcomes = evaluate_photometrics(ImageBuffer.from_array(canvas(value=150)), None, self.config)
        self.assertEqual([o.name for o in outcomes], ["background", "lighting", "shadows", "quality"])

    def test_stats(self):
        stats = compute_stats(ImageBuffer.from_array(canvas(value=200)), None, self.config)
        self.assertAlmostEqual(stats.avg_brightness, 200, places=3)
        self.assertAlmostEqual(stats.variance, 0.0, places=3)
        self.assertAlmostEqual(stats.background_avg_brightness, 200, places=3)
        self.assertEqual(stats.background_source, "margin_band")
        self.assertGreater(stats.background_pixels, 0)

    def test_bright_image(self):
        _stats, outcomes = evaluate_photometrics(ImageBuffer.from_array(canvas(value=235)), None, self.config)
        codes = _codes(outcomes)
        self.assertIn("image_too_bright", codes)
        self.assertNotIn("background_not_plain", codes)

    def test_dark_background(self):
        _stats, outcomes = evaluate_photometrics(ImageBuffer.from_array(canvas(value=120)), None, self.config)
        codes = _codes(outcomes)
        self.assertIn("background_not_plain", codes)
        self.assertNotIn("image_too_dark", codes)

    def test_dark_image(self):
        _stats, outcomes = evaluate_photometrics(ImageBuffer.from_array(canvas(value=50)), None, self.config)
        self.assertIn("image_too_dark", _codes(outcomes))

    def test_low_contrast(self):
        _stats, outcomes = evaluate_photometrics(ImageBuffer.from_array(canvas(value=128)), None, self.config)
        lighting = [o for o in outcomes if o.name == "lighting"][0]
        self.assertIn("low_contrast", [f.code for f in lighting.findings])
        finding = [f for f in lighting.findings if f.code == "low_contrast"][0]
        self.assertFalse(finding.is_critical)
        self.assertEqual(finding.category, "lighting")

    def test_contrasty_image_not_low_contrast(self):
        arr = canvas(value=128)
        arr[::2, :] = 180  # alternating rows: variance 26^2 = 676
        _stats, outcomes = evaluate_photometrics(ImageBuffer.from_array(arr), None, self.config)
        self.assertNotIn("low_contrast", _codes(outcomes))
        relaxed = ValidationConfig(min_image_variance=0.0)
        _stats, outcomes = evaluate_photometrics(ImageBuffer.from_array(canvas(value=128)), None, relaxed)
        self.assertNotIn("low_contrast", _codes(outcomes))

    def test_split_lighting(self):
        arr = canvas(value=0)
        arr[:, 300:] = 255
        _stats, outcomes = evaluate_photometrics(ImageBuffer.from_array(arr), None, self.config)
        codes = _codes(outcomes)
        self.assertIn("unbalanced_lighting", codes)
        self.assertIn("shadows_detected", codes)
        self.assertIn("complex_background", codes)

    def test_photometric_findings_are_warnings(self):
        arr = canvas(value=0)
        arr[:, 300:] = 255
        _stats, outcomes = evaluate_photometrics(ImageBuffer.from_array(arr), None, self.config)
        self.assertTrue(all(not f.is_critical for o in outcomes for f in o.findings))

    def test_sharpness(self):
        flat = ImageBuffer.from_array(canvas(value=150))
        noisy = ImageBuffer.from_array(canvas(value=150, noise=20))
        self.assertEqual(sharpness(flat.luma(), None), 0.0)
        self.assertGreater(sharpness(noisy.luma(), None), 100)
        _stats, outcomes = evaluate_photometrics(flat, None, self.config)
        self.assertIn("image_blurry", _codes(outcomes))

    def test_does_not_modify_input(self):
        arr = canvas(value=150, noise=10)
        image = ImageBuffer.from_array(arr)
        before = image.pixels.copy()
        evaluate_photometrics(image, region((100, 100, 500, 500)), self.config)
        self.assertTrue(np.array_equal(before, image.pixels))
