import os
import logging
from pathlib import Path
from typing import Tuple

from PIL import Image, UnidentifiedImageError

from .. import config
from ..exceptions import EncodeError, FileAccessError, UnsupportedFormatError
from ..interfaces import IThumbnailCache


def thumbnail_dimensions(width: int, height: int, max_size: int) -> Tuple[int, int]:
    """
    Scales so the longer edge equals max_size; the shorter edge follows the
    aspect ratio. Square images are treated as portrait.
    """
    if width > height:
        return max_size, max(1, int(height * (max_size / width)))
    return max(1, int(width * (max_size / height))), max_size


class JpegThumbnailCache(IThumbnailCache):
    """
    Writes resized JPEG copies of library photos into the cache tree.
    """

    def __init__(self, thumbnail_size: int = config.DEFAULT_THUMBNAIL_SIZE,
                 quality: int = config.THUMBNAIL_JPEG_QUALITY):
        self.thumbnail_size = thumbnail_size
        self.quality = quality

    def exists(self, cache_path: Path) -> bool:
        return Path(cache_path).is_file()

    def create(self, source_path: Path, cache_path: Path) -> None:
        source_path = Path(source_path)
        cache_path = Path(cache_path)

        ext = source_path.suffix.lower()
        if ext not in config.JPEG_EXTS:
            raise UnsupportedFormatError(f"unsupported image format: {ext}", path=str(source_path))

        try:
            with Image.open(source_path) as img:
                img.load()
                size = thumbnail_dimensions(img.width, img.height, self.thumbnail_size)
                resized = img.resize(size, Image.Resampling.LANCZOS)
        except (UnidentifiedImageError, Image.DecompressionBombError) as e:
            raise EncodeError(f"error decoding image {source_path}: {e}", path=str(source_path)) from e
        except (FileNotFoundError, PermissionError) as e:
            raise FileAccessError(f"error opening source image {source_path}: {e}", path=str(source_path)) from e
        except OSError as e:
            raise EncodeError(f"error decoding image {source_path}: {e}", path=str(source_path)) from e

        if resized.mode not in ("RGB", "L"):
            resized = resized.convert("RGB")

        try:
            cache_path.parent.mkdir(parents=True, exist_ok=True)
        except OSError as e:
            raise FileAccessError(f"error creating cache directory {cache_path.parent}: {e}", path=str(cache_path)) from e

        # Write beside the target and swap in, so readers never see a partial file
        tmp_path = cache_path.with_name(f".{cache_path.name}.tmp")
        try:
            resized.save(tmp_path, format="JPEG", quality=self.quality)
            os.replace(tmp_path, cache_path)
        except OSError as e:
            tmp_path.unlink(missing_ok=True)
            raise EncodeError(f"error encoding JPEG image {cache_path}: {e}", path=str(cache_path)) from e

        logging.debug(f"Wrote thumbnail {cache_path} ({size[0]}x{size[1]})")

    def remove(self, cache_path: Path) -> None:
        try:
            Path(cache_path).unlink()
        except FileNotFoundError:
            logging.debug(f"Thumbnail already absent: {cache_path}")
        except OSError as e:
            raise FileAccessError(f"could not remove cache file '{cache_path}': {e}", path=str(cache_path)) from e
