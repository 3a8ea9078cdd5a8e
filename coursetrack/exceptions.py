class CourseTrackError(Exception):
    """Base error for failures that are shown to the user."""


class InvalidVideoReference(CourseTrackError):
    """The URL or id given does not name a video."""


class ChapterSourceError(CourseTrackError):
    """The chapter list could not be fetched, or the video has no chapters."""
