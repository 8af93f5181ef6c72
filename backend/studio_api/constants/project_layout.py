"""File and directory names that make up a project's on-disk layout.

Everything here is relative to ``<projects_dir>/<uuid>/`` unless noted.
"""

# Project list, relative to projects_dir
PROJECTS_FILE = "projects.json"

# Directories
RESOURCES_DIR = "resources"
VIDEO_TRACKS_DIR = "resources/videoTracks"
AUDIO_TRACKS_DIR = "resources/audioTracks"
LIBRARY_DIR = "library"
THUMBS_DIR = "thumbs"
THUMBS_CACHE_DIR = "thumbs/cache"
SAVED_DIR = "saved"
PUBLISHED_DIR = "published"

# Documents
INFO_FILE = "info.json"
TRACK_LIST_FILE = "trackList.json"
BACKUP_FILE = "saved/backup.json"
MANIFEST_FILE = "manifest.json"

# Video
UPLOADED_VIDEO_FILE = "originalWithAudio.mp4"
VIDEO_FILE = "video.mp4"
ORIGINAL_RENDITION = "resources/videoTracks/original.mp4"
SMALL_RENDITION = "resources/videoTracks/small.mp4"

# Original audio extracted from the uploaded video
ORIGINAL_AUDIO_WAV = "resources/audioTracks/audio.wav"
ORIGINAL_AUDIO_MP3 = "resources/audioTracks/audio.mp3"

# Export
PUBLISHED_VIDEO_FILE = "published/out.mp4"
PUBLISHED_MIX_FILE = "out.mp3"

# Track id that refers to the original audio instead of a library file
ORIGINAL_AUDIO_TRACK_ID = "-1"

PROJECT_DIRS = (
    RESOURCES_DIR,
    VIDEO_TRACKS_DIR,
    AUDIO_TRACKS_DIR,
    LIBRARY_DIR,
    THUMBS_DIR,
    SAVED_DIR,
    PUBLISHED_DIR,
)
