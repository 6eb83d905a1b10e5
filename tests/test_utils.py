import os
import tempfile
import unittest
from unittest.mock import patch

from ec2_runner.utils import annotate_error, generate_unique_label, set_output


class TestLabels(unittest.TestCase):
    def test_label_shape(self):
        label = generate_unique_label()
        self.assertEqual(len(label), 5)
        self.assertTrue(label.isalnum())
        self.assertEqual(label, label.lower())


class TestOutputs(unittest.TestCase):
    def test_set_output_appends(self):
        with tempfile.NamedTemporaryFile("w", delete=False) as f:
            f.write("existing=1\n")
        try:
            set_output("label", "abc12", output_path=f.name)
            set_output("ec2-instance-id", "i-123", output_path=f.name)
            with open(f.name) as fh:
                self.assertEqual(fh.read(), "existing=1\nlabel=abc12\nec2-instance-id=i-123\n")
        finally:
            os.unlink(f.name)

    @patch("builtins.print")
    def test_annotate_error_escapes_newlines(self, mock_print):
        annotate_error("bad\nthing 100%")
        mock_print.assert_called_once_with("::error::bad%0Athing 100%25", flush=True)


if __name__ == "__main__":
    unittest.main()
