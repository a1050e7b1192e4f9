"""
Configuration constants for the photo collector.
"""

# --- File Type Definitions ---
# Only these extensions are collected; everything else in the library is ignored.
JPEG_EXTS = {'.jpg', '.jpeg'}

# --- Thumbnail Cache ---
# Each album directory is mirrored under the cache root with this leaf segment.
THUMBNAILS_DIR_NAME = "thumbnails"
THUMBNAIL_JPEG_QUALITY = 85

# --- Settings Defaults ---
DEFAULT_THUMBNAIL_SIZE = 300
DEFAULT_MAX_WORKERS = 5
DEFAULT_COLLECTOR_SCHEDULE = "0 */1 * * *"
DEFAULT_DB_NAME = "photo_catalog.db"
LOG_FILE_NAME = "collector.log"

# --- Metadata Parsing ---
DATE_TAGS = [
    'EXIF DateTimeOriginal',
    'EXIF DateTimeDigitized',
    'Image DateTime',
]

# IPTC (record, dataset) pairs
IPTC_OBJECT_NAME = (2, 5)
IPTC_KEYWORDS = (2, 25)
IPTC_CAPTION = (2, 120)

# A keyword that is exactly four digits is treated as the photo's year.
YEAR_KEYWORD_PATTERN = r'^[0-9]{4}$'

# --- Change Detection ---
# ASCII unit separator; never expected inside paths or metadata text.
FINGERPRINT_SEPARATOR = "\x1f"
