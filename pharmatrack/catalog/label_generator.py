"""
Shelf/product label generator
Uses PIL/Pillow and python-barcode to render Code128 labels in memory
"""
import io
import base64
import logging
from typing import Optional

import barcode
from barcode.writer import ImageWriter
from PIL import Image, ImageDraw, ImageFont

from pharmatrack.core.currency import format_currency

logger = logging.getLogger(__name__)

MAX_NAME_LENGTH = 28


def _load_fonts():
    try:
        return (
            ImageFont.truetype('/usr/share/fonts/truetype/dejavu/DejaVuSans-Bold.ttf', 16),
            ImageFont.truetype('/usr/share/fonts/truetype/dejavu/DejaVuSans.ttf', 12),
        )
    except (OSError, IOError):
        return ImageFont.load_default(), ImageFont.load_default()


def _draw_centered(draw, y, text, font, width):
    bbox = draw.textbbox((0, 0), text, font=font)
    text_width = bbox[2] - bbox[0]
    draw.text(((width - text_width) // 2, y), text, fill='black', font=font)
    return bbox[3] - bbox[1]


def generate_label_image(
    product_name: str,
    barcode_value: str,
    price=None,
    currency: Optional[str] = None,
    expiry_date: Optional[str] = None,
    batch_number: Optional[str] = None,
    width: int = 400,  # 4 inches at 100 DPI
    height: int = 200,  # 2 inches at 100 DPI
) -> str:
    """
    Render a product label: name and price on top, the Code128 barcode in
    the middle, the barcode value and batch/expiry line underneath.

    Returns:
        Base64-encoded PNG image as data URL string
    """
    if len(product_name) > MAX_NAME_LENGTH:
        product_name = product_name[:MAX_NAME_LENGTH] + '...'

    img = Image.new('RGB', (width, height), color='white')
    draw = ImageDraw.Draw(img)
    font_large, font_small = _load_fonts()
    margin = 10

    header = product_name
    if price is not None:
        header = f"{product_name}  {format_currency(price, currency)}"
    header_height = _draw_centered(draw, 6, header, font_large, width)

    barcode_y = 6 + header_height + 6
    footer_parts = []
    if batch_number:
        footer_parts.append(f"Batch {batch_number}")
    if expiry_date:
        footer_parts.append(f"Exp {expiry_date}")
    footer_text = '  '.join(footer_parts)
    available_height = height - barcode_y - (38 if footer_text else 22)

    try:
        code128 = barcode.get_barcode_class('code128')
        barcode_img = code128(barcode_value, writer=ImageWriter()).render({
            'write_text': False,
            'module_width': 0.3,
            'module_height': 18.0,
            'quiet_zone': 2.0,
            'background': 'white',
            'foreground': 'black',
        })

        bc_width, bc_height = barcode_img.size
        target_width = width - (2 * margin)
        scale = target_width / bc_width
        target_height = int(bc_height * scale)
        if target_height > available_height:
            scale = available_height / bc_height
            target_height = available_height
            target_width = int(bc_width * scale)

        barcode_img = barcode_img.resize((target_width, target_height), Image.Resampling.BILINEAR)
        img.paste(barcode_img, ((width - target_width) // 2, barcode_y))
        text_y = barcode_y + target_height + 3
    except Exception as e:
        logger.error(f"Barcode generation failed for '{barcode_value}': {str(e)}")
        text_y = barcode_y

    value_height = _draw_centered(draw, text_y, barcode_value, font_small, width)
    if footer_text:
        _draw_centered(draw, text_y + value_height + 4, footer_text, font_small, width)

    buffer = io.BytesIO()
    img.save(buffer, format='PNG', optimize=False, compress_level=1)
    image_base64 = base64.b64encode(buffer.getvalue()).decode('utf-8')
    buffer.close()
    img.close()

    return f'data:image/png;base64,{image_base64}'
