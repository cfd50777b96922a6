ENGINE_VERSION = "0.1.0"

# Image formats
SUPPORTED_INPUT_FORMATS = (".png", ".jpg", ".jpeg", ".bmp", ".tif", ".tiff", ".webp")
SUPPORTED_OUTPUT_FORMATS = (".png", ".jpg", ".jpeg", ".bmp", ".tif", ".tiff", ".webp")

# Locator: candidate extraction
ADAPTIVE_BLOCK_FRACTION = 0.085  # of the shorter image edge
ADAPTIVE_OFFSET = 10.0
MIN_PATCH_AREA_FRACTION = 0.0004
MAX_PATCH_AREA_FRACTION = 0.05
POLY_APPROX_EPSILON = 0.04  # of the contour perimeter
MIN_RECTANGULARITY = 0.85
AREA_CLUSTER_LOW = 0.4  # relative to the median candidate area
AREA_CLUSTER_HIGH = 2.5
BORDER_GUARD_PX = 1

# Locator: grid fitting
GRID_SNAP_TOLERANCE = 0.3  # in pitch units
MIN_AXIS_COSINE = 0.5
MIN_FIDUCIAL_PATCHES = 4
MAX_FIT_RESIDUAL = 0.15  # RMS reprojection error in pitch units
FIDUCIAL_COLOR_SCALE = 30.0  # dE at which fiducial match decays to 1/e
FIDUCIAL_SAMPLE_RADIUS = 0.25  # of the candidate side length
RESIDUAL_TIE_TOLERANCE = 0.01  # residuals this close (pitch units) are tied
MAX_ASPECT_DISTORTION = 2.0  # fitted outline aspect vs ChartSpec.aspect_ratio

# Confidence
MIN_LOCATE_CONFIDENCE = 0.3

# Sampling
SAMPLE_INSET = 0.2  # trimmed from each side of a patch region
TRIM_FRACTION = 0.05  # by luminance, from each end

# Judgment
DEFAULT_PATCH_TOLERANCE = 10.0
DEFAULT_DELTA_E_METHOD = "cie76"

# Colour correction
MIN_CORRECTION_PATCHES = 4

# Annotation colours (BGR)
PASS_COLOR = (0, 200, 0)
FAIL_COLOR = (0, 0, 230)
UNSAMPLED_COLOR = (0, 200, 230)
CHART_OUTLINE_COLOR = (255, 200, 0)
ANNOTATION_THICKNESS_FRACTION = 0.003

# Concurrency
DEFAULT_MAX_CONCURRENCY = 4
