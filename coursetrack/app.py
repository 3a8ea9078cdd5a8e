import os
import sys
from datetime import datetime

import pandas as pd
import streamlit as st

# Ensure project root is in path
current_dir = os.path.dirname(os.path.abspath(__file__))
parent_dir = os.path.dirname(current_dir)
if parent_dir not in sys.path:
    sys.path.insert(0, parent_dir)

from coursetrack.chapter_source import WATCH_URL
from coursetrack.config import load_settings
from coursetrack.main import build_tracker
from coursetrack.player import Player
from coursetrack.utils import setup_logging


class EmbeddedPlayer(Player):
    """
    Stands in for the browser-side st.video element. Its clock lives in the
    browser, so the server never gets a position; seeks set the start time
    used on the next render.
    """

    def __init__(self):
        self.start_time = 0
        self._callbacks = []

    def get_current_position(self):
        return None

    def seek_to(self, seconds):
        self.start_time = int(seconds)

    def on_state_change(self, callback):
        self._callbacks.append(callback)


# Page Config
st.set_page_config(
    page_title="YouTube Course Player",
    page_icon="🎬",
    layout="wide"
)

# Initialize Session State
if 'tracker' not in st.session_state:
    setup_logging()
    st.session_state.settings = load_settings()
    st.session_state.tracker = build_tracker(st.session_state.settings)
    st.session_state.player = EmbeddedPlayer()
    st.session_state.tracker.attach_player(st.session_state.player)

tracker = st.session_state.tracker
player = st.session_state.player

# Sidebar
st.sidebar.title("Course Content")
url = st.sidebar.text_input("YouTube URL", placeholder="Paste YouTube URL...")
if st.sidebar.button("Load Course"):
    with st.spinner("Loading course..."):
        if tracker.load_video(url):
            player.seek_to(0)

if tracker.last_error:
    st.sidebar.error(f"❌ {tracker.last_error}")

st.sidebar.caption(f"Progress file: {st.session_state.settings.progress_file}")

st.title("YouTube Course Player 🎬")

if not tracker.chapters:
    st.info("Enter a YouTube URL to start learning.")
    st.stop()

snapshot = tracker.snapshot()
chapters = snapshot["chapters"]
completed = set(snapshot["completed_chapters"])

# --- Progress header ---
col1, col2 = st.columns([4, 1])
with col1:
    st.progress(snapshot["progress_percentage"] / 100)
with col2:
    st.markdown(f"**{snapshot['progress_percentage']}% complete**")

# --- Player ---
current = chapters[snapshot["current_chapter"]]
st.video(WATCH_URL.format(video_id=snapshot["video_id"]), start_time=player.start_time)

col1, col2 = st.columns([4, 1])
with col1:
    st.subheader(f"Now Playing: {current.title}")
    st.caption(f"Chapter {snapshot['current_chapter'] + 1} of {len(chapters)} • {current.display_time}")
with col2:
    is_done = snapshot["current_chapter"] in completed
    if st.button("Completed ✓" if is_done else "Mark Complete"):
        tracker.mark_chapter_completed(snapshot["current_chapter"])
        st.rerun()

# --- Chapters ---
st.header(f"{len(chapters)} chapters")

jump_to = st.selectbox(
    "Jump to chapter",
    options=range(len(chapters)),
    index=snapshot["current_chapter"],
    format_func=lambda i: f"{i + 1}. {chapters[i].title} ({chapters[i].display_time})",
)
if jump_to != snapshot["current_chapter"]:
    tracker.seek_to_chapter(jump_to)
    st.rerun()

df = pd.DataFrame([
    {
        "#": i + 1,
        "Title": chap.title,
        "Start": chap.display_time,
        "Completed": i in completed,
    }
    for i, chap in enumerate(chapters)
])

edited_df = st.data_editor(
    df,
    column_config={
        "Completed": st.column_config.CheckboxColumn(
            "Completed",
            help="Tick chapters you've finished",
            default=False,
        )
    },
    disabled=["#", "Title", "Start"],
    hide_index=True,
    width='stretch',
    key=f"chapters-{snapshot['video_id']}-{snapshot['updated_at']}",
)

changed = edited_df.index[edited_df["Completed"] != df["Completed"]].tolist()
if changed:
    for i in changed:
        tracker.mark_chapter_completed(int(i))
    st.rerun()

# --- Summary ---
st.header("Your Progress")
st.markdown(f"**Completion:** {snapshot['progress_percentage']}%")
st.markdown(f"**Chapters done:** {len(completed)}/{len(chapters)}")
if snapshot["updated_at"]:
    last = datetime.fromtimestamp(snapshot["updated_at"] / 1000)
    st.markdown(f"**Last watched:** {last:%Y-%m-%d}")
