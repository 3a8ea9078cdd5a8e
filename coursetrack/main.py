import argparse
import asyncio
import pathlib
import sys

import pandas as pd

from .chapter_source import JsonChapterSource, YouTubeChapterSource
from .config import load_settings
from .exceptions import InvalidVideoReference
from .player import SimulatedPlayer
from .progress_store import ProgressStore, get_video_progress
from .substrate import JsonFileSubstrate
from .tracker import PlaybackTracker, TrackerState
from .utils import extract_video_id, get_logger, seconds_to_display, setup_logging

logger = get_logger("Main")


def build_tracker(settings) -> PlaybackTracker:
    if settings.chapters_dir:
        source = JsonChapterSource(settings.chapters_dir)
    else:
        source = YouTubeChapterSource(timeout=settings.request_timeout)
    store = ProgressStore(JsonFileSubstrate(settings.progress_file), key=settings.storage_key)
    return PlaybackTracker(source, store, sample_interval=settings.sample_interval)


def print_chapters(tracker: PlaybackTracker):
    progress = tracker.video_progress
    total = len(tracker.chapters)

    print("\n" + "=" * 60)
    print(f"{tracker.video_id}: {total} CHAPTERS, {progress.progress_percentage}% COMPLETE")
    print("=" * 60)
    print(f"{'#':<5} | {'DONE':<4} | {'START':<8} | {'TITLE':<40}")
    print("-" * 66)

    for i, chap in enumerate(tracker.chapters):
        mark = "x" if i in progress.completed_chapters else ""
        pointer = " <" if i == tracker.current_chapter and tracker.state != TrackerState.READY else ""
        print(f"{i + 1:<5} | {mark:<4} | {chap.display_time:<8} | {chap.title[:40]}{pointer}")

    print("-" * 66)
    print(f"Chapters done: {len(progress.completed_chapters)}/{total}")


def progress_table(store) -> pd.DataFrame:
    rows = []
    for video_id, progress in store.items():
        rows.append({
            "Video": video_id,
            "Completed": len(progress.completed_chapters),
            "Progress": f"{progress.progress_percentage}%",
            "Last Chapter": progress.last_watched_chapter + 1 if progress.last_watched_chapter >= 0 else "-",
            "Watch Time": seconds_to_display(progress.total_watch_time_seconds),
            "Updated": pd.to_datetime(progress.updated_at, unit="ms") if progress.updated_at else pd.NaT,
        })
    df = pd.DataFrame(rows, columns=["Video", "Completed", "Progress", "Last Chapter", "Watch Time", "Updated"])
    return df.sort_values("Updated", ascending=False, na_position="last").reset_index(drop=True)


async def watch_video(tracker: PlaybackTracker, duration: float, speed: float, resume: bool) -> None:
    """Plays the loaded video on a simulated player until it ends."""
    player = SimulatedPlayer(duration, speed=speed)
    tracker.attach_player(player)
    player.load()

    if resume and tracker.resume():
        chap = tracker.chapters[tracker.current_chapter]
        logger.info(f"Resuming at chapter {tracker.current_chapter + 1}: '{chap.title}' ({chap.display_time})")

    player.play()
    try:
        while tracker.state == TrackerState.SAMPLING:
            await asyncio.sleep(tracker.sample_interval)
    finally:
        if tracker.state == TrackerState.SAMPLING:
            player.pause()


def cmd_chapters(tracker, args) -> int:
    if not tracker.load_video(args.video):
        return 1
    print_chapters(tracker)
    return 0


def cmd_status(tracker, args) -> int:
    if not args.video:
        if not tracker.progress:
            print("No progress recorded yet.")
            return 0
        print(progress_table(tracker.progress).to_string(index=False))
        return 0

    try:
        video_id = extract_video_id(args.video)
    except InvalidVideoReference as e:
        logger.error(str(e))
        return 1

    progress = get_video_progress(tracker.progress, video_id)
    print(f"Video:          {video_id}")
    print(f"Completion:     {progress.progress_percentage}%")
    print(f"Chapters done:  {', '.join(str(i + 1) for i in sorted(progress.completed_chapters)) or '-'}")
    print(f"Last watched:   {progress.last_watched_chapter + 1 if progress.last_watched_chapter >= 0 else '-'}")
    print(f"Watch time:     {seconds_to_display(progress.total_watch_time_seconds)}")
    return 0


def cmd_toggle(tracker, args) -> int:
    if not tracker.load_video(args.video):
        return 1
    # Chapters are numbered from 1 on screen
    if not tracker.mark_chapter_completed(args.chapter - 1):
        # A failed save has already been logged
        if not tracker.last_error:
            logger.error(f"Chapter {args.chapter} does not exist (1-{len(tracker.chapters)}).")
        return 1
    print_chapters(tracker)
    return 0


def cmd_watch(tracker, args) -> int:
    if not tracker.load_video(args.video):
        return 1

    video_id = tracker.video_id
    duration = args.duration or tracker.chapters[-1].offset_seconds + 60
    logger.info(f"Watching {video_id} ({seconds_to_display(int(duration))}) at {args.speed}x")
    try:
        asyncio.run(watch_video(tracker, duration, args.speed, args.resume))
    except KeyboardInterrupt:
        logger.info("Stopped by user.")
    finally:
        tracker.close()

    print(f"\nProgress saved: {get_video_progress(tracker.progress, video_id).progress_percentage}%")
    return 0


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="Track your progress through chaptered YouTube videos")
    parser.add_argument("--progress-file", type=pathlib.Path, help="Where progress is stored")
    parser.add_argument("--chapters-dir", type=pathlib.Path,
                        help="Read <video_id>.json chapter files from here instead of YouTube")
    parser.add_argument("--verbose", "-v", action="store_true", help="Enable verbose logging")

    sub = parser.add_subparsers(dest="command", required=True)

    p = sub.add_parser("chapters", help="List a video's chapters and completion")
    p.add_argument("video", help="YouTube URL or video id")
    p.set_defaults(func=cmd_chapters)

    p = sub.add_parser("status", help="Show progress for one video, or all of them")
    p.add_argument("video", nargs="?", help="YouTube URL or video id")
    p.set_defaults(func=cmd_status)

    p = sub.add_parser("toggle", help="Mark or unmark a chapter as completed")
    p.add_argument("video", help="YouTube URL or video id")
    p.add_argument("chapter", type=int, help="Chapter number, as listed")
    p.set_defaults(func=cmd_toggle)

    p = sub.add_parser("watch", help="Play through a video on a simulated player")
    p.add_argument("video", help="YouTube URL or video id")
    p.add_argument("--speed", type=float, default=1.0, help="Playback speed multiplier")
    p.add_argument("--duration", type=float, help="Video length in seconds (default: last chapter + 60s)")
    p.add_argument("--resume", action="store_true", help="Start at the last watched chapter")
    p.set_defaults(func=cmd_watch)

    return parser


def main(argv=None) -> int:
    args = build_parser().parse_args(argv)

    log_level = "DEBUG" if args.verbose else "INFO"
    setup_logging(log_level)

    settings = load_settings()
    if args.progress_file:
        settings.progress_file = args.progress_file
    if args.chapters_dir:
        settings.chapters_dir = args.chapters_dir

    tracker = build_tracker(settings)
    return args.func(tracker, args)


if __name__ == "__main__":
    sys.exit(main())
