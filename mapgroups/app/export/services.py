"""CSV, ZIP and image exports of location groups."""

import datetime
import io
import re
import zipfile
from collections.abc import Iterable
from typing import Any

from PIL import Image, ImageDraw, ImageFont, UnidentifiedImageError

from ..errors import ValidationFailed
from ..models import DEFAULT_LOCATION_COLOR

_NON_ALNUM = re.compile(r'[^a-z0-9]', re.IGNORECASE)

# Marker list layout, in CSS pixels; rendered at SCALE for sharper text.
SCALE = 2
LIST_WIDTH = 300
PADDING = 20
HEADER_SIZE = 18
HEADER_GAP = 16
TEXT_SIZE = 13
NUMBER_SIZE = 12
CIRCLE_SIZE = 24
ITEM_PADDING = 8
ITEM_GAP = 12
LINE_HEIGHT = 1.4

BACKGROUND = '#ffffff'
ITEM_BACKGROUND = '#f9fafb'
HEADER_COLOR = '#111827'
TEXT_COLOR = '#374151'
MUTED_COLOR = '#6b7280'
EMPTY_TEXT = 'No locations in this group'

MAX_MAP_UPLOAD_BYTES = 20 * 1024 * 1024


def generate_csv(group: dict[str, Any]) -> str:
    """Render a group as a one-column CSV of its titles.

    Args:
        group: A group as returned by group_to_dict, locations in order.
    """
    lines = [f'{group["name"]} Addresses']
    for location in group.get('locations') or []:
        title = (location.get('title') or '').replace('"', '""')
        lines.append(f'"{title}"')
    return '\n'.join(lines) + '\n'


def csv_filename(name: str) -> str:
    return f'{_NON_ALNUM.sub("_", name).lower()}_locations.csv'


def zip_filename(today: datetime.date | None = None) -> str:
    today = today or datetime.date.today()
    return f'location_groups_export_{today.isoformat()}.zip'


def screenshot_filename(name: str) -> str:
    return f'{_NON_ALNUM.sub("_", name)}_Locations_Map.png'


def build_zip(groups: Iterable[dict[str, Any]]) -> bytes:
    """Bundle one CSV per group into a ZIP archive."""
    buffer = io.BytesIO()
    with zipfile.ZipFile(buffer, 'w', compression=zipfile.ZIP_DEFLATED) as archive:
        for group in groups:
            archive.writestr(csv_filename(group['name']), generate_csv(group))
    return buffer.getvalue()


def _px(value: float) -> int:
    return round(value * SCALE)


def _font(size: int) -> ImageFont.FreeTypeFont | ImageFont.ImageFont:
    return ImageFont.load_default(size=_px(size))


def _wrap(
    text: str, font: ImageFont.FreeTypeFont | ImageFont.ImageFont, width: int
) -> list[str]:
    """Greedy word wrap; words longer than a line are broken by character."""
    measure = ImageDraw.Draw(Image.new('RGB', (1, 1)))
    lines: list[str] = []
    current = ''
    for word in text.split():
        candidate = f'{current} {word}' if current else word
        if measure.textlength(candidate, font=font) <= width:
            current = candidate
            continue
        if current:
            lines.append(current)
        current = ''
        for char in word:
            if current and measure.textlength(current + char, font=font) > width:
                lines.append(current)
                current = ''
            current += char
    if current:
        lines.append(current)
    return lines or ['']


def render_marker_list(group: dict[str, Any]) -> Image.Image:
    """Draw the numbered marker list shown beside a map screenshot."""
    header_font = _font(HEADER_SIZE)
    text_font = _font(TEXT_SIZE)
    number_font = _font(NUMBER_SIZE)

    width = _px(LIST_WIDTH)
    padding = _px(PADDING)
    text_left = padding + _px(ITEM_PADDING + CIRCLE_SIZE + ITEM_GAP)
    text_width = width - text_left - padding - _px(ITEM_PADDING)
    line_height = _px(TEXT_SIZE * LINE_HEIGHT)
    locations = group.get('locations') or []

    header_lines = _wrap(group['name'], header_font, width - 2 * padding)
    header_height = len(header_lines) * _px(HEADER_SIZE * LINE_HEIGHT)

    items: list[tuple[dict[str, Any], list[str], int]] = []
    for location in locations:
        lines = _wrap(location.get('title') or '', text_font, text_width)
        body = max(len(lines) * line_height, _px(CIRCLE_SIZE))
        items.append((location, lines, body + 2 * _px(ITEM_PADDING)))

    body_height = (
        sum(height + _px(ITEM_GAP) for _, _, height in items)
        if items
        else line_height
    )
    height = padding + header_height + _px(HEADER_GAP) + body_height + padding

    image = Image.new('RGB', (width, height), BACKGROUND)
    draw = ImageDraw.Draw(image)

    y = padding
    for line in header_lines:
        draw.text((padding, y), line, font=header_font, fill=HEADER_COLOR)
        y += _px(HEADER_SIZE * LINE_HEIGHT)
    y += _px(HEADER_GAP)

    if not items:
        draw.text((padding, y), EMPTY_TEXT, font=text_font, fill=MUTED_COLOR)
        return image

    for number, (location, lines, item_height) in enumerate(items, start=1):
        draw.rounded_rectangle(
            (padding, y, width - padding, y + item_height),
            radius=_px(6),
            fill=ITEM_BACKGROUND,
        )
        left = padding + _px(ITEM_PADDING)
        top = y + _px(ITEM_PADDING)
        circle = (left, top, left + _px(CIRCLE_SIZE), top + _px(CIRCLE_SIZE))
        draw.ellipse(
            circle,
            fill=location.get('color') or DEFAULT_LOCATION_COLOR,
            outline='white',
            width=_px(2),
        )
        draw.text(
            ((circle[0] + circle[2]) / 2, (circle[1] + circle[3]) / 2),
            str(number),
            font=number_font,
            fill='white',
            anchor='mm',
        )
        for index, line in enumerate(lines):
            draw.text(
                (text_left, top + index * line_height), line, font=text_font, fill=TEXT_COLOR
            )
        y += item_height + _px(ITEM_GAP)

    return image


def combine_images(map_image: Image.Image, list_image: Image.Image) -> Image.Image:
    """Place the map on the left and the marker list on the right."""
    width = map_image.width + list_image.width
    height = max(map_image.height, list_image.height)
    combined = Image.new('RGB', (width, height), BACKGROUND)
    combined.paste(map_image.convert('RGB'), (0, 0))
    combined.paste(list_image.convert('RGB'), (map_image.width, 0))
    return combined


def open_image(content: bytes) -> Image.Image:
    """Decode an uploaded image.

    Raises:
        ValidationFailed: If the upload is too large in bytes or pixels, or
            is not an image Pillow can read.
    """
    if len(content) > MAX_MAP_UPLOAD_BYTES:
        raise ValidationFailed(
            details=[{'field': 'map', 'message': 'Map image must be 20MB or smaller'}]
        )
    try:
        image = Image.open(io.BytesIO(content))
        image.load()
    except Image.DecompressionBombError as exc:
        raise ValidationFailed(
            details=[{'field': 'map', 'message': 'Map image has too many pixels'}]
        ) from exc
    except (UnidentifiedImageError, OSError) as exc:
        raise ValidationFailed(
            details=[{'field': 'map', 'message': 'Map must be a PNG or JPEG image'}]
        ) from exc
    return image


def to_png(image: Image.Image) -> bytes:
    output = io.BytesIO()
    image.save(output, format='PNG')
    return output.getvalue()
