import logging
import re
from datetime import datetime
from pathlib import Path
from typing import Dict, List, Optional, Any
from xml.sax.saxutils import unescape

import exifread
from PIL import Image, IptcImagePlugin, UnidentifiedImageError

from .. import config
from ..exceptions import DecodeError, FileAccessError
from ..models import ImageMetadata

XMP_APP1_PREFIX = b'http://ns.adobe.com/xap/1.0/\x00'

_XMP_LI = re.compile(r'<rdf:li[^>]*>([^<]*)</rdf:li>', re.S)
_XMP_SUBJECT = re.compile(r'<dc:subject>(.*?)</dc:subject>', re.S)
_XMP_TITLE = re.compile(r'<dc:title>(.*?)</dc:title>', re.S)
_XMP_DESCRIPTION = re.compile(r'<dc:description>(.*?)</dc:description>', re.S)
_XMP_PERSON = re.compile(r'<Iptc4xmpExt:PersonInImage>(.*?)</Iptc4xmpExt:PersonInImage>', re.S)
_XMP_REGION_NAME = re.compile(r'mwg-rs:Name(?:="([^"]*)"|>([^<]*)</mwg-rs:Name>)')


class MetadataExtractor:
    """
    Reads the embedded metadata the catalog tracks from a JPEG.

    Strategies:
      - Pillow: decodes the image header (dimensions), IPTC and the XMP packet.
      - exifread: EXIF camera/lens, capture time, description and GPS.
    """

    def extract(self, path: Path) -> ImageMetadata:
        """
        Raises FileAccessError if the file cannot be opened and DecodeError
        if it is not a decodable image.
        """
        meta = ImageMetadata()

        try:
            with Image.open(path) as img:
                meta.width, meta.height = img.size
                iptc = self._read_iptc(img)
                xmp = self._read_xmp(img)
        except (UnidentifiedImageError, Image.DecompressionBombError) as e:
            raise DecodeError(f"could not decode image '{path}': {e}", path=str(path)) from e
        except (FileNotFoundError, PermissionError, IsADirectoryError) as e:
            raise FileAccessError(f"could not open file '{path}': {e}", path=str(path)) from e
        except OSError as e:
            raise DecodeError(f"could not extract metadata from '{path}': {e}", path=str(path)) from e

        tags = self._read_exif(path)

        meta.creation_datetime = self._parse_exif_date(tags)
        meta.make = self._tag(tags, 'Image Make')
        meta.model = self._tag(tags, 'Image Model')
        meta.lens_make = self._tag(tags, 'EXIF LensMake')
        meta.lens_model = self._tag(tags, 'EXIF LensModel')
        meta.latitude, meta.longitude = self._parse_gps(tags)

        meta.keywords = _unique(self._iptc_values(iptc, config.IPTC_KEYWORDS) + _xmp_items(_XMP_SUBJECT, xmp))
        meta.people = _unique(_xmp_items(_XMP_PERSON, xmp) + _xmp_region_names(xmp))

        meta.caption = (
            self._tag(tags, 'Image ImageDescription')
            or _first(_xmp_items(_XMP_DESCRIPTION, xmp))
            or _first(self._iptc_values(iptc, config.IPTC_CAPTION))
        )
        meta.title = (
            _first(_xmp_items(_XMP_TITLE, xmp))
            or _first(self._iptc_values(iptc, config.IPTC_OBJECT_NAME))
        )
        return meta

    # --- Internal Extraction Helpers ---

    def _read_exif(self, path: Path) -> Dict[str, Any]:
        try:
            with path.open('rb') as f:
                # details=False skips makernotes and thumbnails
                return exifread.process_file(f, details=False)
        except Exception as e:
            logging.warning(f"ExifRead failed for {path}: {e}")
            return {}

    def _read_iptc(self, img: Image.Image) -> Dict[tuple, Any]:
        try:
            return IptcImagePlugin.getiptcinfo(img) or {}
        except Exception as e:
            logging.debug(f"IPTC read failed: {e}")
            return {}

    def _read_xmp(self, img: Image.Image) -> str:
        data = img.info.get('xmp')
        if not data:
            for marker, segment in getattr(img, 'applist', []):
                if marker == 'APP1' and segment.startswith(XMP_APP1_PREFIX):
                    data = segment[len(XMP_APP1_PREFIX):]
                    break
        if not data:
            return ""
        if isinstance(data, bytes):
            return data.decode('utf-8', errors='ignore')
        return str(data)

    def _iptc_values(self, iptc: Dict[tuple, Any], key: tuple) -> List[str]:
        value = iptc.get(key)
        if value is None:
            return []
        if not isinstance(value, list):
            value = [value]
        out = []
        for v in value:
            text = v.decode('utf-8', errors='ignore') if isinstance(v, bytes) else str(v)
            text = text.strip()
            if text:
                out.append(text)
        return out

    def _tag(self, tags: Dict[str, Any], name: str) -> str:
        if name in tags:
            return str(tags[name]).strip()
        return ""

    def _parse_exif_date(self, tags) -> Optional[datetime]:
        for tag in config.DATE_TAGS:
            if tag in tags:
                try:
                    # EXIF format is usually "YYYY:MM:DD HH:MM:SS"
                    dt_str = str(tags[tag]).replace(':', '-', 2)
                    return datetime.strptime(dt_str, "%Y-%m-%d %H:%M:%S")
                except ValueError:
                    continue
        return None

    def _parse_gps(self, tags) -> tuple:
        lat = tags.get('GPS GPSLatitude')
        lon = tags.get('GPS GPSLongitude')
        if lat is None or lon is None:
            return 0.0, 0.0

        try:
            latitude = _dms_to_degrees(lat.values)
            longitude = _dms_to_degrees(lon.values)
        except (AttributeError, IndexError, TypeError, ZeroDivisionError) as e:
            logging.debug(f"Unreadable GPS coordinates: {e}")
            return 0.0, 0.0

        if str(tags.get('GPS GPSLatitudeRef', 'N')).strip().upper() == 'S':
            latitude = -latitude
        if str(tags.get('GPS GPSLongitudeRef', 'E')).strip().upper() == 'W':
            longitude = -longitude
        return latitude, longitude


def _ratio_to_float(value) -> float:
    # exifread Ratio is a Fraction in 3.x and carries num/den in 2.x
    if hasattr(value, 'num') and hasattr(value, 'den'):
        return float(value.num) / float(value.den)
    return float(value)


def _dms_to_degrees(values) -> float:
    degrees = _ratio_to_float(values[0])
    minutes = _ratio_to_float(values[1]) if len(values) > 1 else 0.0
    seconds = _ratio_to_float(values[2]) if len(values) > 2 else 0.0
    return degrees + (minutes / 60.0) + (seconds / 3600.0)


def _xmp_items(pattern: re.Pattern, xmp: str) -> List[str]:
    if not xmp:
        return []
    out = []
    for block in pattern.findall(xmp):
        for item in _XMP_LI.findall(block):
            text = unescape(item).strip()
            if text:
                out.append(text)
    return out


def _xmp_region_names(xmp: str) -> List[str]:
    if not xmp:
        return []
    names = []
    for attr, elem in _XMP_REGION_NAME.findall(xmp):
        text = unescape(attr or elem).strip()
        if text:
            names.append(text)
    return names


def _unique(values: List[str]) -> List[str]:
    seen = set()
    out = []
    for v in values:
        if v not in seen:
            seen.add(v)
            out.append(v)
    return out


def _first(values: List[str]) -> str:
    return values[0] if values else ""
