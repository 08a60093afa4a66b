"""Constants for ImageSort package."""

from enum import IntEnum

# Extensions watched when none are given (no leading dot, lowercase)
DEFAULT_EXTENSIONS = ("png", "jpg", "jpeg")

# Minimum top-1 probability required to move a file
DEFAULT_CONFIDENCE = 0.9

# Seconds to wait after a creation event so the writer can finish the file
DEBOUNCE_SECONDS = 1.0

# Seconds to wait for in-flight attempts when the watcher stops
DRAIN_TIMEOUT = 5.0

# How often the watch loop checks its stop signal
STOP_POLL_SECONDS = 0.5

# Number of ranked entries reported per file
TOPK_DISPLAY = 3

# torchvision model used as the classification oracle
DEFAULT_MODEL = "squeezenet1_0"

# Environment overrides
ENV_WEIGHTS = "IMAGESORT_WEIGHTS"
ENV_LABELS = "IMAGESORT_LABELS"


class ExitCode(IntEnum):
    """Process exit codes."""

    OK = 0
    BELOW_CONFIDENCE = 1
    INVALID_ARGUMENTS = 2
    UNHANDLED_ERROR = 3
    STARTUP_FAILURE = 4
