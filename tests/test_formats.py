import unittest
from pathlib import Path

from lyricsync.formats import AudioFormat, detect_format


class TestDetectFormat(unittest.TestCase):
    def test_known_extensions(self) -> None:
        self.assertEqual(detect_format(Path("/music/a.flac")), AudioFormat.FLAC)
        self.assertEqual(detect_format(Path("/music/a.mp3")), AudioFormat.MP3)
        self.assertEqual(detect_format(Path("/music/a.m4a")), AudioFormat.M4A)

    def test_extension_is_case_insensitive(self) -> None:
        self.assertEqual(detect_format("Song.FLAC"), AudioFormat.FLAC)
        self.assertEqual(detect_format("Song.Mp3"), AudioFormat.MP3)
        self.assertEqual(detect_format("Song.M4A"), AudioFormat.M4A)

    def test_unsupported_extensions(self) -> None:
        for name in ("cover.jpg", "notes.lrc", "track.ogg", "README", "song.flac.bak"):
            with self.subTest(name=name):
                self.assertEqual(detect_format(name), AudioFormat.UNSUPPORTED)

    def test_does_not_touch_filesystem(self) -> None:
        self.assertEqual(
            detect_format(Path("/does/not/exist/track.mp3")), AudioFormat.MP3
        )


if __name__ == "__main__":
    unittest.main()
