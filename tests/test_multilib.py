import unittest

import tools_for_test  # noqa: F401  also sets up module search paths
from multilib import multilib_variant, parse_multilib_list


class ParseTest(unittest.TestCase):

    def test_default_variant_has_no_flags(self):
        variant = multilib_variant.parse(".;")
        self.assertEqual(".", variant.directory)
        self.assertEqual([], variant.flag_list)
        self.assertEqual("", variant.option)
        self.assertEqual("", variant.build_suffix)

    def test_variant_with_flags(self):
        variant = multilib_variant.parse("rv32imac/ilp32;@march=rv32imac@mabi=ilp32")
        self.assertEqual("rv32imac/ilp32", variant.directory)
        self.assertEqual(["march=rv32imac", "mabi=ilp32"], variant.flag_list)
        self.assertEqual("-march=rv32imac -mabi=ilp32", variant.option)
        self.assertEqual("_march=rv32imac_mabi=ilp32", variant.build_suffix)

    def test_illegal_line(self):
        with self.assertRaises(AssertionError):
            multilib_variant.parse("rv32i/ilp32")
        with self.assertRaises(AssertionError):
            multilib_variant.parse(";@march=rv32i")


class ParseListTest(unittest.TestCase):

    def test_clang_output(self):
        output = ".;\nrv32i/ilp32;@march=rv32i@mabi=ilp32\nrv32imafc/ilp32f;@march=rv32imafc@mabi=ilp32f\n"
        self.assertEqual(
            [
                multilib_variant(".", []),
                multilib_variant("rv32i/ilp32", ["march=rv32i", "mabi=ilp32"]),
                multilib_variant("rv32imafc/ilp32f", ["march=rv32imafc", "mabi=ilp32f"]),
            ],
            parse_multilib_list(output),
        )

    def test_failed_query(self):
        self.assertEqual([], parse_multilib_list(None))
        self.assertEqual([], parse_multilib_list(""))


if __name__ == "__main__":
    unittest.main()
