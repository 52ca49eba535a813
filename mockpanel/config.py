"""
MockPanel Configuration System
==============================

This file contains ALL configuration for the mock interview panel.
- User settings at the top (things users might want to change)
- Internal constants at the bottom (technical defaults)
"""
import os
from dataclasses import dataclass
from typing import Optional


# =============================================================================
# USER SETTINGS - Edit these to customize the panel's behavior
# =============================================================================

# Live speech provider. Either an API key or a Google Cloud project is required.
GEMINI_API_KEY = None
GOOGLE_CLOUD_PROJECT = None
GOOGLE_APPLICATION_CREDENTIALS = None  # Optional: path to service account JSON

# Interview settings
TARGET_DURATION_MINUTES = 30
WORKDIR = "./_interviews"

# Advisory server
SERVER_HOST = "0.0.0.0"
SERVER_PORT = 3001
ADVISORY_URL = "ws://localhost:3001/ws/interview"
ENABLE_ADVISORY = True

# Logging
LOG_FILE = "./_interviews/mockpanel.log"
LOG_LEVEL = "INFO"


# =============================================================================
# INTERNAL CONSTANTS - Don't change these unless you know what you're doing
# =============================================================================

# Live model
LIVE_MODEL_NAME = "gemini-2.5-flash-native-audio-preview-12-2025"
VERTEX_LOCATION = "us-central1"
PANELIST_VOICES = ("Kore", "Charon", "Fenrir", "Aoede", "Puck")

# Audio
INPUT_SAMPLE_RATE = 16000
OUTPUT_SAMPLE_RATE = 24000
CAPTURE_FRAMES_PER_BUFFER = 2048
SPEAKER_BLOCK_FRAMES = 2400

# Session transitions
SESSION_SETTLE_SECONDS = 0.3
HANDOFF_PAUSE_SECONDS = 0.8
ROTATION_MIN_QUESTIONS = 2
ROTATION_COOLDOWN_SECONDS = 5.0

# Turn selection
MIN_DEPTH = 1
MAX_DEPTH = 5
FOLLOW_UP_WORD_TARGET = 50
PERSONA_FOCUS_WEIGHT = 0.7
RECENT_TURN_WINDOW = 5

# Interview phases
PHASE_POLL_SECONDS = 10.0
CLOSING_THRESHOLD_SECONDS = 180.0
OPENING_WINDOW_SECONDS = 60.0
COMPLETION_GRACE_SECONDS = 5.0

# Advisory hints
HINT_TTL_SECONDS = 30.0
HINT_THROTTLE_SECONDS = 2.0
ADVISORY_CONNECT_TIMEOUT = 5.0


# =============================================================================
# MAIN CONFIG OBJECT
# =============================================================================

@dataclass
class Config:
    """Main configuration object."""
    gemini_api_key: Optional[str] = None
    google_cloud_project: Optional[str] = None
    google_application_credentials: Optional[str] = None
    vertex_location: str = VERTEX_LOCATION
    live_model_name: str = LIVE_MODEL_NAME
    target_duration_minutes: float = TARGET_DURATION_MINUTES
    workdir: str = WORKDIR
    server_host: str = SERVER_HOST
    server_port: int = SERVER_PORT
    advisory_url: str = ADVISORY_URL
    enable_advisory: bool = ENABLE_ADVISORY
    log_file: str = LOG_FILE
    log_level: str = LOG_LEVEL

    @property
    def target_duration_seconds(self) -> float:
        return self.target_duration_minutes * 60

    def require_live_credentials(self) -> None:
        """Raise if neither an API key nor a Cloud project is configured."""
        if not self.gemini_api_key and not self.google_cloud_project:
            raise ValueError(
                "Please set GEMINI_API_KEY or GOOGLE_CLOUD_PROJECT in config.py or as environment variable"
            )


def get_config() -> Config:
    """Load configuration, letting environment variables override the settings above."""
    target_minutes = os.getenv("MOCKPANEL_TARGET_MINUTES")
    port = os.getenv("MOCKPANEL_PORT")

    try:
        target_minutes = float(target_minutes) if target_minutes else TARGET_DURATION_MINUTES
        port = int(port) if port else SERVER_PORT
    except ValueError as e:
        raise ValueError(f"Invalid numeric setting in environment: {e}")

    return Config(
        gemini_api_key=os.getenv("GEMINI_API_KEY") or GEMINI_API_KEY,
        google_cloud_project=os.getenv("GOOGLE_CLOUD_PROJECT") or GOOGLE_CLOUD_PROJECT,
        google_application_credentials=os.getenv("GOOGLE_APPLICATION_CREDENTIALS") or GOOGLE_APPLICATION_CREDENTIALS,
        target_duration_minutes=target_minutes,
        server_host=os.getenv("MOCKPANEL_HOST") or SERVER_HOST,
        server_port=port,
        advisory_url=os.getenv("MOCKPANEL_ADVISORY_URL") or ADVISORY_URL,
        log_level=os.getenv("MOCKPANEL_LOG_LEVEL") or LOG_LEVEL,
    )
