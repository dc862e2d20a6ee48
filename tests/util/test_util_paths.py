import unittest

from drivepicker.util.paths import name_from_path


class TestUtilPaths(unittest.TestCase):
    def test_name_from_path(self) -> None:
        self.assertEqual(name_from_path("a/b/c.txt"), "c.txt")
        self.assertEqual(name_from_path("folder/"), "folder")
        self.assertEqual(name_from_path("single"), "single")
        self.assertEqual(name_from_path(""), "")


if __name__ == "__main__":
    unittest.main()
