import logging
import re
import subprocess
import json
from pathlib import Path
from datetime import datetime, timezone
from typing import Optional, Dict, Any

import exifread
from PIL import Image
from pymediainfo import MediaInfo

from .. import config
from ..exceptions import MetadataUnavailable
from ..models import MediaKind, MediaMetadata

# ISO 6709 location string as written by phones into video containers,
# e.g. "+37.3318-122.0312+010.000/"
_ISO6709 = re.compile(r'([+-]\d+(?:\.\d+)?)([+-]\d+(?:\.\d+)?)')


class MetadataExtractor:
    """
    Default metadata resolver.

    resolve() never raises for unsupported or broken files; it returns an
    empty MediaMetadata instead.

    Strategies:
      - Images: 'exifread' for dates/device/GPS, Pillow for dimensions.
      - Video: 'pymediainfo' (fast wrapper) -> falls back to 'exiftool' (robust).
    """

    def resolve(self, path: Path, kind: Optional[MediaKind] = None) -> MediaMetadata:
        if kind is None:
            kind = MediaKind(config.EXT_TO_KIND.get(path.suffix.lower(), 'other'))

        if kind is MediaKind.OTHER:
            return MediaMetadata(is_other=True)

        try:
            if kind is MediaKind.VIDEO:
                return self.get_video_metadata(path)
            return self.get_image_metadata(path)
        except MetadataUnavailable as e:
            logging.debug(f"No metadata for {path}: {e}")
            return MediaMetadata()

    def get_image_metadata(self, path: Path) -> MediaMetadata:
        meta = MediaMetadata()
        tags: Dict[str, Any] = {}
        try:
            with path.open('rb') as f:
                # details=False speeds up processing significantly
                tags = exifread.process_file(f, details=False)
        except Exception as e:
            logging.debug(f"ExifRead failed for {path}: {e}")

        meta.capture_datetime = self._parse_exif_date(tags, config.PRIMARY_DATE_TAGS)
        meta.secondary_datetime = self._parse_exif_date(tags, config.SECONDARY_DATE_TAGS)
        meta.gps_datetime = self._parse_gps_datetime(tags)
        meta.gps_lat, meta.gps_lon = self._parse_gps_coords(tags)

        if 'Image Make' in tags:
            meta.device_make = str(tags['Image Make']).strip() or None
        if 'Image Model' in tags:
            meta.device_model = str(tags['Image Model']).strip() or None

        meta.width, meta.height = self._image_size(path, tags)

        if meta == MediaMetadata():
            raise MetadataUnavailable(f"No EXIF or pixel data in {path}")
        return meta

    def get_video_metadata(self, path: Path) -> MediaMetadata:
        # Strategy 1: Try MediaInfo (Fastest, usually sufficient)
        try:
            meta = self._extract_mediainfo(path)
            if meta.capture_datetime or meta.width:
                return meta
        except Exception as e:
            logging.debug(f"MediaInfo failed for {path}: {e}")

        # Strategy 2: Try ExifTool (Robust fallback, requires system install)
        try:
            meta = self._extract_exiftool(path)
            if meta.capture_datetime or meta.width:
                return meta
        except Exception as e:
            # Only log at debug level to avoid spamming console if tool is missing
            logging.debug(f"ExifTool failed for {path}: {e}")

        raise MetadataUnavailable(f"No container metadata in {path}")

    # --- Internal Extraction Helpers ---

    def _extract_mediainfo(self, path: Path) -> MediaMetadata:
        mi = MediaInfo.parse(str(path))
        meta = MediaMetadata()

        for track in mi.tracks:
            if track.track_type == "General":
                # Priority: recorded -> encoded -> tagged
                meta.capture_datetime = self._parse_flexible_date(getattr(track, "recorded_date", None))
                for field in ("encoded_date", "tagged_date"):
                    dt = self._parse_flexible_date(getattr(track, field, None))
                    if dt:
                        if meta.capture_datetime is None:
                            meta.capture_datetime = dt
                        elif meta.secondary_datetime is None:
                            meta.secondary_datetime = dt

                meta.device_make = getattr(track, "make", None) or getattr(track, "comapplequicktimemake", None)
                meta.device_model = (
                    getattr(track, "model", None) or
                    getattr(track, "comapplequicktimemodel", None) or
                    getattr(track, "device_model", None) or
                    getattr(track, "performer", None)
                )

                location = getattr(track, "xyz", None) or getattr(track, "comapplequicktimelocationiso6709", None)
                meta.gps_lat, meta.gps_lon = self._parse_iso6709(location)

            elif track.track_type == "Video" and meta.width is None:
                meta.width = self._to_int(getattr(track, "width", None))
                meta.height = self._to_int(getattr(track, "height", None))
        return meta

    def _extract_exiftool(self, path: Path) -> MediaMetadata:
        """
        Wraps the 'exiftool' command line utility.
        Must be installed and on the system PATH.
        """
        # -j = JSON output
        # -n = No formatting (returns clean numbers and dates)
        cmd = ["exiftool", "-j", "-n", str(path)]
        out = subprocess.check_output(cmd, stderr=subprocess.DEVNULL, text=True)
        data_list = json.loads(out)

        meta = MediaMetadata()
        if not data_list:
            return meta
        tags = data_list[0]

        for field in ("DateTimeOriginal", "CreationDate", "MediaCreateDate"):
            if tags.get(field):
                meta.capture_datetime = self._parse_flexible_date(str(tags[field]))
                if meta.capture_datetime:
                    break
        if tags.get("CreateDate"):
            meta.secondary_datetime = self._parse_flexible_date(str(tags["CreateDate"]))

        meta.device_make = tags.get("Make")
        meta.device_model = tags.get("Model") or tags.get("CameraModelName")
        meta.width = self._to_int(tags.get("ImageWidth"))
        meta.height = self._to_int(tags.get("ImageHeight"))
        if tags.get("GPSLatitude") is not None and tags.get("GPSLongitude") is not None:
            meta.gps_lat = float(tags["GPSLatitude"])
            meta.gps_lon = float(tags["GPSLongitude"])
        return meta

    def _image_size(self, path: Path, tags) -> tuple[Optional[int], Optional[int]]:
        # Pillow only reads the header here; RAW formats it cannot open fall back to EXIF
        try:
            with Image.open(path) as im:
                return im.size
        except Exception as e:
            logging.debug(f"Pillow cannot read dimensions of {path}: {e}")
        w = self._to_int(str(tags['EXIF ExifImageWidth'])) if 'EXIF ExifImageWidth' in tags else None
        h = self._to_int(str(tags['EXIF ExifImageLength'])) if 'EXIF ExifImageLength' in tags else None
        return w, h

    def _parse_exif_date(self, tags, tag_names) -> Optional[datetime]:
        """Parses the first readable EXIF date among tag_names."""
        for tag in tag_names:
            if tag in tags:
                try:
                    # EXIF format is usually "YYYY:MM:DD HH:MM:SS"
                    dt_str = str(tags[tag]).replace(':', '-', 2)
                    return datetime.strptime(dt_str, "%Y-%m-%d %H:%M:%S")
                except ValueError:
                    continue
        return None

    def _parse_gps_datetime(self, tags) -> Optional[datetime]:
        if 'GPS GPSDate' not in tags or 'GPS GPSTimeStamp' not in tags:
            return None
        try:
            day = datetime.strptime(str(tags['GPS GPSDate']).strip(), "%Y:%m:%d")
            h, m, s = (self._ratio_to_float(v) for v in tags['GPS GPSTimeStamp'].values)
            utc = day.replace(hour=int(h), minute=int(m), second=int(s), tzinfo=timezone.utc)
            # Compare on the same naive local clock as the other dates
            return utc.astimezone().replace(tzinfo=None)
        except (ValueError, TypeError, AttributeError):
            return None

    def _parse_gps_coords(self, tags) -> tuple[Optional[float], Optional[float]]:
        try:
            lat = self._dms_to_degrees(tags['GPS GPSLatitude'].values)
            lon = self._dms_to_degrees(tags['GPS GPSLongitude'].values)
        except (KeyError, AttributeError, ValueError, ZeroDivisionError):
            return None, None
        if str(tags.get('GPS GPSLatitudeRef', 'N')).strip().upper() == 'S':
            lat = -lat
        if str(tags.get('GPS GPSLongitudeRef', 'E')).strip().upper() == 'W':
            lon = -lon
        return lat, lon

    def _dms_to_degrees(self, values) -> float:
        d, m, s = (self._ratio_to_float(v) for v in values)
        return d + m / 60.0 + s / 3600.0

    @staticmethod
    def _ratio_to_float(value) -> float:
        if hasattr(value, 'num') and hasattr(value, 'den'):
            return value.num / value.den
        return float(value)

    @staticmethod
    def _parse_iso6709(value: Optional[str]) -> tuple[Optional[float], Optional[float]]:
        if not value:
            return None, None
        m = _ISO6709.match(str(value).strip())
        if not m:
            return None, None
        return float(m.group(1)), float(m.group(2))

    @staticmethod
    def _to_int(value) -> Optional[int]:
        try:
            return int(value) if value is not None else None
        except (TypeError, ValueError):
            return None

    def _parse_flexible_date(self, dt_str: Optional[str]) -> Optional[datetime]:
        """
        Handles various date formats (ISO, UTC suffixes, Exiftool quirks).
        Returns a naive datetime object.
        """
        if not dt_str:
            return None

        # Clean up common suffixes/prefixes
        clean = str(dt_str).replace("UTC", "").strip()

        # 1. Try ISO format (e.g. 2020-01-01T12:00:00)
        try:
            return datetime.fromisoformat(clean).replace(tzinfo=None)
        except ValueError:
            pass

        # 2. Try Standard EXIF style "YYYY:MM:DD HH:MM:SS"
        try:
            clean_exif = clean.replace(":", "-", 2)
            # Handle potential sub-second precision which strptime hates
            if "." in clean_exif:
                clean_exif = clean_exif.split(".")[0]
            return datetime.strptime(clean_exif, "%Y-%m-%d %H:%M:%S")
        except ValueError:
            pass

        return None
