"""Core constants for agentkb.

This module defines shared constants used across the application to ensure
consistency and avoid hardcoded values in multiple locations.
"""

DEFAULT_API_BASE_URL = "http://localhost:8000/api/"
"""Default base URL for the knowledge-base service."""

DEFAULT_DEBOUNCE_SECONDS = 0.5
"""Quiet window after which queued mutations collapse into one re-fetch."""

DEFAULT_POLL_INTERVAL_SECONDS = 5.0
"""Interval between training status polls."""

DEFAULT_PROGRESS_STEP = 10
"""Progress increment used when the service does not report a percentage."""

PROGRESS_CEILING_WHILE_POLLING = 90
"""Synthetic progress never passes this value before a terminal answer."""

DEFAULT_MAX_POLLS = 720
"""Upper bound on status polls for one training job (one hour at 5s)."""

DEFAULT_NOTIFICATION_HISTORY = 100

# Service-side training status labels
SERVICE_STATUS_TRAINING = "Training"
SERVICE_STATUS_ACTIVE = "Active"
SERVICE_STATUS_ISSUES = "Issues"
