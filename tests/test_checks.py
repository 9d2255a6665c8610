import unittest

from tests._test_path import SRC  # noqa: F401  (ensures src on path)
from tests._images import canvas

from dvphoto.core.config import ValidationConfig
from dvphoto.core.models import ImageBuffer
from dvphoto.validation.checks import check_dimensions, check_file_size, check_format, run_basic_checks
from dvphoto.validation.codes import Severity


def _codes(outcome):
    return [f.code for f in outcome.findings]


class TestBasicChecks(unittest.TestCase):
    def setUp(self):
        self.config = ValidationConfig()

    def test_dimensions(self):
        ok = check_dimensions(ImageBuffer.from_array(canvas(600, 600)), self.config)
        self.assertTrue(ok.passed)
        self.assertEqual(ok.measurements["aspectRatio"], 1.0)

        bad = check_dimensions(ImageBuffer.from_array(canvas(400, 400)), self.config)
        self.assertEqual(_codes(bad), ["invalid_dimensions"])
        self.assertIs(bad.findings[0].severity, Severity.ERROR)
        self.assertIn("400x400", bad.findings[0].message)
        self.assertFalse(bad.measurements["isValid"])

    def test_dimensions_exact_match_only(self):
        bad = check_dimensions(ImageBuffer.from_array(canvas(601, 600)), self.config)
        self.assertEqual(_codes(bad), ["invalid_dimensions"])

    def test_file_size_bounds_inclusive(self):
        self.assertTrue(check_file_size(10 * 1024, self.config).passed)
        self.assertTrue(check_file_size(240 * 1024, self.config).passed)
        self.assertEqual(_codes(check_file_size(10 * 1024 - 1, self.config)), ["file_too_small"])
        self.assertEqual(_codes(check_file_size(240 * 1024 + 1, self.config)), ["file_too_large"])

    def test_file_size_measurements(self):
        m = check_file_size(2048, self.config).measurements
        self.assertEqual(m["sizeKB"], 2.0)
        self.assertEqual(m["sizeBytes"], 2048)
        self.assertFalse(m["isValid"])

    def test_format(self):
        jpeg = ImageBuffer.from_array(canvas(8, 8), source_format="JPEG", declared_extension="jpg")
        self.assertTrue(check_format(jpeg, self.config).passed)

        png = ImageBuffer.from_array(canvas(8, 8), source_format="PNG", declared_extension="png")
        self.assertEqual(_codes(check_format(png, self.config)), ["wrong_format"])

        renamed = ImageBuffer.from_array(canvas(8, 8), source_format="JPEG", declared_extension="png")
        self.assertEqual(_codes(check_format(renamed, self.config)), ["wrong_format"])

    def test_all_checks_run(self):
        img = ImageBuffer.from_array(canvas(400, 300), source_format="PNG", byte_length=1000)
        outcomes = run_basic_checks(img, self.config)
        self.assertEqual([o.name for o in outcomes], ["dimensions", "fileSize", "format"])
        codes = [c for o in outcomes for c in _codes(o)]
        self.assertEqual(codes, ["invalid_dimensions", "file_too_small", "wrong_format"])
