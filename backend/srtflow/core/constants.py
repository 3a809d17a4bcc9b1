"""Project-wide constants and state definitions."""

from __future__ import annotations

from enum import Enum


class JobStatus(str, Enum):
    UPLOADING = "uploading"
    PROCESSING = "processing"
    PROCESSING_AUDIO = "processing_audio"
    COMPLETED = "completed"
    ERROR = "error"


class StepState(str, Enum):
    PENDING = "pending"
    ACTIVE = "active"
    DONE = "done"
    FAILED = "failed"


# Position of each status in the display order. `error` is a side branch, not a further step.
STATUS_ORDINALS = {
    JobStatus.UPLOADING: 0,
    JobStatus.PROCESSING: 1,
    JobStatus.PROCESSING_AUDIO: 2,
    JobStatus.COMPLETED: 3,
    JobStatus.ERROR: 4,
}

PIPELINE_STEPS = [
    JobStatus.UPLOADING,
    JobStatus.PROCESSING,
    JobStatus.PROCESSING_AUDIO,
    JobStatus.COMPLETED,
]

# `uploading` only exists client-side before the job record is created.
PERSISTED_STATES = {
    JobStatus.PROCESSING,
    JobStatus.PROCESSING_AUDIO,
    JobStatus.COMPLETED,
    JobStatus.ERROR,
}

INITIAL_STATUS = JobStatus.PROCESSING

TERMINAL_STATES = {JobStatus.COMPLETED, JobStatus.ERROR}

DEFAULT_MAX_UPLOAD_MB = 200

MEDIA_EXTENSIONS = ("mp3", "wav", "m4a", "aac", "flac", "mp4", "mov", "avi", "mkv", "webm")
TEACH_TRANSCRIPT_EXTENSIONS = ("txt", "srt")
TEACH_AUDIO_EXTENSIONS = ("mp3", "wav", "m4a", "aac", "flac")

SUBTITLE_SUFFIX = ".srt"
RECENT_JOBS_LIMIT = 5
