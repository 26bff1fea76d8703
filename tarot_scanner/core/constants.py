from typing import Final, FrozenSet, Tuple

# Signature geometry (w, h); the 2:3 card ratio
SIGNATURE_WIDTH: Final[int] = 24
SIGNATURE_HEIGHT: Final[int] = 36
SIGNATURE_SIZE: Final[int] = SIGNATURE_WIDTH * SIGNATURE_HEIGHT
TARGET_RATIO: Final[float] = 2 / 3

# Live-frame viewfinder guide, as a fraction of frame width
ROI_WIDTH_FRACTION: Final[float] = 0.68

# Luminance weights (R, G, B)
LUMA_WEIGHTS: Final[Tuple[float, float, float]] = (0.299, 0.587, 0.114)

# Orientation vocabularies for label parsing
REVERSED_TOKENS: Final[FrozenSet[str]] = frozenset({
    "invertida", "invertido", "invertid", "inverted", "reversed",
    "reverse", "reversa", "rx", "down", "upside", "baixo",
})
UPRIGHT_TOKENS: Final[FrozenSet[str]] = frozenset({
    "vertical", "upright", "normal", "up", "direita",
})

# Capture import: substrings of a file name that pin its orientation
IMPORT_REVERSED_HINTS: Final[Tuple[str, ...]] = ("invertido", "horizontal", "inverted", "reversed")
IMPORT_UPRIGHT_HINTS: Final[Tuple[str, ...]] = ("vertical", "upright", "normal")
IMAGE_EXTENSIONS: Final[Tuple[str, ...]] = (".jpg", ".jpeg", ".png", ".webp", ".bmp")

# Local matcher confidence model
LOCAL_SIMILARITY_SCALE: Final[float] = 2.2
LOCAL_MARGIN_SCALE: Final[float] = 1.0
LOCAL_SIMILARITY_WEIGHT: Final[float] = 0.72
LOCAL_NO_RUNNER_UP_MARGIN: Final[float] = 0.5
LOCAL_MAX_SAMPLES: Final[int] = 10

# Local matcher thresholds per catalog richness (lo, hi)
LOCAL_SMALL_CATALOG_CARDS: Final[int] = 2
LOCAL_SMALL_BAND: Final[Tuple[float, float]] = (0.20, 0.45)
LOCAL_RICH_BAND: Final[Tuple[float, float]] = (0.52, 0.68)

# Trained model
MODEL_FORMAT: Final[str] = "layers-model"
DEFAULT_INPUT_SIZE: Final[Tuple[int, int]] = (224, 224)

# Recognition defaults
DEFAULT_MODEL_URL: Final[str] = "/model/model.json"
DEFAULT_METADATA_URL: Final[str] = "/model/metadata.json"
DEFAULT_INTERVAL_MS: Final[int] = 300
DEFAULT_CONFIDENCE_THRESHOLD: Final[float] = 0.84
DEFAULT_MIN_VOTES: Final[int] = 3

# Label diagnostics keep only the first few unmapped labels
MAX_UNMAPPED_LABELS: Final[int] = 8
