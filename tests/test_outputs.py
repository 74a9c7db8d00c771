import os
import re
import tempfile
import unittest

from inactivity_lock.infrastructure.outputs import ActionOutputs


class TestActionOutputs(unittest.TestCase):
    def test_set_output_keeps_value_in_memory(self) -> None:
        outputs = ActionOutputs()

        outputs.set_output("locked-issues", "[]")

        self.assertEqual(outputs.values, {"locked-issues": "[]"})

    def test_set_output_appends_delimited_block(self) -> None:
        with tempfile.TemporaryDirectory() as tmp:
            path = os.path.join(tmp, "output")
            outputs = ActionOutputs(output_path=path)

            outputs.set_output("locked-issues", '[{"number":3,"title":"Issue 3"}]')
            outputs.set_output("locked-prs", "[]")

            with open(path, encoding="utf-8") as fh:
                content = fh.read()

        blocks = re.findall(r"^(\S+)<<(ghadelimiter_\S+)\n(.*)\n\2$", content, re.MULTILINE)
        self.assertEqual(
            [(name, value) for name, _, value in blocks],
            [("locked-issues", '[{"number":3,"title":"Issue 3"}]'), ("locked-prs", "[]")],
        )

    def test_set_failed_marks_run_failed(self) -> None:
        outputs = ActionOutputs()
        self.assertFalse(outputs.failed)

        with self.assertLogs("inactivity_lock.infrastructure.outputs", level="ERROR") as logs:
            outputs.set_failed("Failed to lock issue/PR #1: API error")

        self.assertTrue(outputs.failed)
        self.assertEqual(outputs.failures, ["Failed to lock issue/PR #1: API error"])
        self.assertIn("Failed to lock issue/PR #1: API error", logs.output[0])
