import dataclasses
import unittest

from coursetrack.models import Chapter, VideoProgress


class TestChapter(unittest.TestCase):
    def test_chapter_initialization(self):
        chap = Chapter(
            title="Intro",
            display_time="0:00",
            source_url="https://www.youtube.com/watch?v=abcdefghijk&t=0s",
        )
        self.assertEqual(chap.title, "Intro")
        self.assertEqual(chap.offset_seconds, 0)

    def test_chapter_is_immutable(self):
        chap = Chapter(title="Intro", display_time="0:00", source_url="", offset_seconds=0)
        with self.assertRaises(dataclasses.FrozenInstanceError):
            chap.offset_seconds = 10

    def test_chapter_repr(self):
        chap = Chapter(title="Setup", display_time="2:05", source_url="", offset_seconds=125)
        self.assertIn("Setup", repr(chap))
        self.assertIn("125s", repr(chap))


class TestVideoProgress(unittest.TestCase):
    def test_defaults(self):
        progress = VideoProgress()
        self.assertEqual(progress.completed_chapters, frozenset())
        self.assertEqual(progress.last_watched_chapter, -1)
        self.assertEqual(progress.progress_percentage, 0)
        self.assertEqual(progress.total_watch_time_seconds, 0)

    def test_to_dict_sorts_completed(self):
        progress = VideoProgress(completed_chapters=frozenset({3, 0, 1}), last_watched_chapter=3,
                                 progress_percentage=75, total_watch_time_seconds=2, updated_at=1000)
        self.assertEqual(progress.to_dict(), {
            "completedChapters": [0, 1, 3],
            "lastWatchedChapter": 3,
            "progressPercentage": 75,
            "totalWatchTimeSeconds": 2,
            "updatedAt": 1000,
        })

    def test_from_dict_fills_missing_fields(self):
        progress = VideoProgress.from_dict({"completedChapters": [2]})
        self.assertEqual(progress.completed_chapters, frozenset({2}))
        self.assertEqual(progress.last_watched_chapter, -1)
        self.assertEqual(progress.updated_at, 0)

    def test_from_dict_rejects_garbage(self):
        with self.assertRaises(TypeError):
            VideoProgress.from_dict(["not", "a", "record"])
        with self.assertRaises(ValueError):
            VideoProgress.from_dict({"completedChapters": ["x"]})
        with self.assertRaises(ValueError):
            VideoProgress.from_dict({"completedChapters": [-1]})

    def test_from_dict_requires_a_list_of_chapters(self):
        # A string would otherwise be iterated digit by digit
        for value in ("12", {"0": True}, 3):
            with self.assertRaises(TypeError):
                VideoProgress.from_dict({"completedChapters": value})


if __name__ == "__main__":
    unittest.main()
