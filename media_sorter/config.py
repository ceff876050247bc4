"""
Configuration constants for the media sorter.
"""

# --- File Type Definitions ---
RAW_EXTS = {'.cr2', '.cr3', '.arw', '.nef', '.dng', '.orf', '.raf', '.rw2', '.pef', '.srw', '.3fr'}
JPEG_EXTS = {'.jpg', '.jpeg'}
IMAGE_EXTS = JPEG_EXTS | RAW_EXTS | {'.png', '.gif', '.bmp', '.tif', '.tiff', '.heic', '.heif', '.webp'}
VIDEO_EXTS = {'.mp4', '.mov', '.m4v', '.avi', '.mts', '.m2ts', '.3gp', '.mpg', '.mpeg', '.mkv', '.wmv', '.tod'}

# Extension to Kind Mapping
# Anything not listed here is classified 'other'
EXT_TO_KIND = {}
for ext in IMAGE_EXTS: EXT_TO_KIND[ext] = 'image'
for ext in VIDEO_EXTS: EXT_TO_KIND[ext] = 'video'

# --- Metadata Parsing ---
PRIMARY_DATE_TAGS = [
    'EXIF DateTimeOriginal',
]
SECONDARY_DATE_TAGS = [
    'EXIF DateTimeDigitized',
    'Image DateTime',
]

# Dates outside [MIN_PLAUSIBLE_YEAR, now + MAX_FUTURE_DAYS] are discarded
MIN_PLAUSIBLE_YEAR = 2000
MAX_FUTURE_DAYS = 365

# --- Hashing ---
HASH_CHUNK_SIZE = 64 * 1024  # 64 KB chunks for reading

# Perceptual hash: downscale to PHASH_IMAGE_SIZE^2, keep PHASH_DCT_SIZE^2 low frequencies
PHASH_IMAGE_SIZE = 32
PHASH_DCT_SIZE = 8
PHASH_HAMMING_THRESHOLD = 12

# --- Quality Arbitration ---
# Size differences below this fraction of the larger file are a tie
SIZE_TIE_TOLERANCE = 0.05

# --- Organization ---
IMAGES_DIRNAME = "Images"
VIDEOS_DIRNAME = "Videos"
OTHERS_DIRNAME = "Others"
DUPLICATES_DIRNAME = "Duplicates"
UNKNOWN_DATE_DIRNAME = "Unknown Date"
FOLDER_PATTERN = "{year}/{year-month}"

# --- Journal / Resume ---
TRANSACTIONS_DIRNAME = "transactions"
JOURNAL_AUTOSAVE_COUNT = 10
CHECKPOINT_FILENAME = "checkpoint.json"
CHECKPOINT_INTERVAL = 50

# --- Catalog (cross-run index) ---
CATALOG_FILENAME = "media_sorter_catalog.db"
# Index snapshot kept next to the checkpoint of an interrupted run
RESUME_INDEX_FILENAME = "resume_index.db"

# --- Performance ---
DEFAULT_MAX_WORKERS = 4

# --- Logging ---
LOG_FILENAME = "media_sorter.log"
