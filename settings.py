# Default parameters for DarkTrack reconstruction and tracking.
# Lengths are in micrometers unless stated otherwise.

# Padding (pixels) added on every side of a hologram before propagation
PAD = 100

# Background removal
DEFAULT_BACKGROUND_SIGMA = 30
MEAN_BACKGROUND_MIN_FRAMES = 10
GAUSS_TRUNCATE = 2.0        # kernel size 2*ceil(2*sigma)+1

# Segmentation
DEFAULT_MIN_PIX = 10
SCORE_SMOOTH_SIGMA = 4
LOCAL_THRESHOLD_SCALE = 1.1
LOCAL_BLOCK_DIVISOR = 16

# Localization
SHARP_PERCENTILE = 80

# Tracking
DEFAULT_FRAME_FORGET = 20
DEFAULT_VELOCITY_WINDOW = 5
GATING_FACTOR = 10

# Reporting
DEFAULT_SHOW_TMP_RES = 1
PROGRESS_EVERY = 10

DEFAULT_N0 = 1.0
DEFAULT_WORKERS = 1
