"""
Scheduling constants.

This module contains static FSRS (Free Spaced Repetition Scheduler) weights and
the drill-scheduling defaults built around them.
No runtime configuration or path defaults - pure constants only.
"""
from typing import Tuple

# Default FSRS weights ('w'), FSRS-4 layout with 17 entries.
# w[0..3] are the initial stabilities for Again/Hard/Good/Easy.
DEFAULT_PARAMETERS: Tuple[float, ...] = (
    0.4,   # w[0]
    0.6,   # w[1]
    2.4,   # w[2]
    5.8,   # w[3]
    4.93,  # w[4]
    0.94,  # w[5]
    0.86,  # w[6]
    0.01,  # w[7]
    1.49,  # w[8]
    0.14,  # w[9]
    0.94,  # w[10]
    2.18,  # w[11]
    0.05,  # w[12]
    0.34,  # w[13]
    1.26,  # w[14]
    0.29,  # w[15]
    2.61,  # w[16]
)

PARAMETER_COUNT: int = 17

DEFAULT_DESIRED_RETENTION: float = 0.9
DEFAULT_MAXIMUM_INTERVAL: int = 36500  # days

# Short-interval steps, in minutes.
DEFAULT_LEARNING_STEPS: Tuple[int, ...] = (1, 10)
DEFAULT_RELEARNING_STEPS: Tuple[int, ...] = (1, 10)

DEFAULT_GRADUATING_INTERVAL: int = 1  # days
DEFAULT_EASY_INTERVAL: int = 4  # days

# Drill graduation (pattern variations retiring from rotation).
DEFAULT_GRADUATION_CONSECUTIVE: int = 5
DEFAULT_GRADUATION_MIN_INTERVAL: int = 16  # days
DEFAULT_REACTIVATION_LAPSE_THRESHOLD: int = 2
DEFAULT_REACTIVATION_WINDOW_DAYS: int = 30
DEFAULT_REACTIVATION_MAX_SIBLINGS: int = 3

DEFAULT_SESSION_SIZE: int = 20

ERROR_HISTORY_LIMIT: int = 10
MASTERED_STABILITY_DAYS: float = 21.0

DEFAULT_COMMONALITY: float = 0.5
DEFAULT_UNIT: int = 1

# Persistence keys.
CARDS_STORAGE_KEY: str = "drillcore_cards"
ANALYTICS_STORAGE_KEY: str = "drillcore_analytics"

ANALYTICS_MAX_RESPONSES: int = 10000
