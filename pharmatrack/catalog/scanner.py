"""
Barcode / QR decoding of uploaded images

Decoding itself is delegated to zbar (via pyzbar); this module only
prepares the image and shapes the results.
"""
import base64
import binascii
import io
import logging

from PIL import Image, ImageOps, UnidentifiedImageError

logger = logging.getLogger(__name__)

MAX_IMAGE_SIDE = 1600


class BarcodeDecodeError(Exception):
    """Raised when an uploaded image cannot be read"""


def decode_image_payload(image_data) -> bytes:
    """Accept raw bytes, a base64 string or a data URL and return image bytes"""
    if isinstance(image_data, bytes):
        return image_data
    if not isinstance(image_data, str) or not image_data:
        raise BarcodeDecodeError('No image provided')
    if image_data.startswith('data:'):
        image_data = image_data.split(',', 1)[-1]
    try:
        return base64.b64decode(image_data, validate=False)
    except (binascii.Error, ValueError) as e:
        raise BarcodeDecodeError(f'Invalid base64 image: {str(e)}')


def _prepare_image(image_bytes: bytes) -> Image.Image:
    try:
        img = Image.open(io.BytesIO(image_bytes))
        img = ImageOps.exif_transpose(img)
    except (UnidentifiedImageError, OSError) as e:
        raise BarcodeDecodeError(f'Unreadable image: {str(e)}')
    # Greyscale and bounded size keeps zbar fast on phone photos
    img = img.convert('L')
    if max(img.size) > MAX_IMAGE_SIDE:
        img.thumbnail((MAX_IMAGE_SIDE, MAX_IMAGE_SIDE))
    return img


def _zbar_decode(img):
    # pyzbar loads the native zbar library at import time
    from pyzbar import pyzbar
    return pyzbar.decode(img)


def decode_barcodes(image_data) -> list:
    """
    Decode every barcode/QR code in an image.

    Returns a list of {'value', 'symbology'} dicts, de-duplicated in
    reading order. An empty list means nothing was found.
    """
    image_bytes = decode_image_payload(image_data)
    img = _prepare_image(image_bytes)

    results = []
    seen = set()
    for symbol in _zbar_decode(img):
        if not symbol.data:
            continue
        value = symbol.data.decode('utf-8', errors='replace').strip()
        if not value or value in seen:
            continue
        seen.add(value)
        results.append({'value': value, 'symbology': symbol.type})

    logger.info(f"Decoded {len(results)} barcode(s) from uploaded image")
    return results
