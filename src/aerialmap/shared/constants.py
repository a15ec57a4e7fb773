from enum import Enum

# --- Web Mercator and XYZ tiles
# Maximum zoom level accepted by the display
MAX_ZOOM = 19

# Maximum number of tile rings around the center tile
MAX_BLOCKS = 8

# Earth radius for Web Mercator (meters)
EARTH_RADIUS_M = 6378137.0

# Base Web Mercator tile size (pixels)
TILE_SIZE = 256

# Latitude limit of the square Web Mercator world (degrees)
MERCATOR_MAX_LAT_DEG = 85.0511

WORLD_LNG_SPAN_DEG = 360.0
WORLD_LNG_HALF_SPAN_DEG = 180.0
WORLD_LAT_MAX_DEG = 90.0

# Placeholders a tile URL template must contain
TILE_URL_PLACEHOLDERS = ('{x}', '{y}', '{z}')

# --- Display defaults
DEFAULT_ZOOM = 16
DEFAULT_BLOCKS = 3
DEFAULT_ALPHA = 0.7

# Alpha at or above this value is rendered as fully opaque
ALPHA_OPAQUE_THRESHOLD = 0.9998

# Depth bias applied to every tile material
TILE_DEPTH_BIAS = -16.0

# Names of generated scene objects
SLOT_OBJECT_PREFIX = 'satellite_object_'
SLOT_MATERIAL_PREFIX = 'satellite_material_'

# --- Frames
# Anchor frame the tile grid is rigidly attached to (ENU)
MAP_FRAME = 'map'

# Maximum age of a transform sample used for a stamped lookup (seconds)
TRANSFORM_LOOKUP_TOLERANCE_S = 0.5

# Samples kept per frame in the transform buffer
TRANSFORM_BUFFER_SIZE = 100

# --- Tile request error rate
# Rolling window of load outcomes per tile source
ERROR_RATE_WINDOW = 100
ERROR_RATE_ERROR_THRESHOLD = 0.95
ERROR_RATE_WARN_THRESHOLD = 0.30

# Minimum interval between repeated assembly error log lines (seconds)
ASSEMBLY_ERROR_LOG_INTERVAL_S = 5.0

# --- HTTP defaults
HTTP_TIMEOUT_DEFAULT = 20.0
HTTP_RETRIES_DEFAULT = 4
HTTP_BACKOFF_FACTOR = 1.6
HTTP_5XX_MIN = 500
HTTP_5XX_MAX = 600
HTTP_USER_AGENT = 'aerialmap/1.0'

# Maximum number of concurrent tile downloads
DOWNLOAD_CONCURRENCY = 8

# --- Persistent tile store
TILE_STORE_DIR = '.cache/aerialmap/tiles'
TILE_STORE_MAX_SIZE_MB = 512

# --- Profiles
PROFILES_DIR_ENV = 'AERIALMAP_PROFILES_DIR'
PROFILES_DIR = '.config/aerialmap/profiles'


class StatusKey(str, Enum):
    TOPIC = 'Topic'
    TILE_REQUEST = 'TileRequest'
    MESSAGE = 'Message'
    TRANSFORM = 'Transform'
    SETTINGS = 'Settings'
