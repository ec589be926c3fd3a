"""
Offline image service for development and tests.

Renders real PNG images with Pillow instead of calling a model, so the whole
generation flow (validation included) runs without an API key or gemstone cost
at the provider.
"""

import random
import time
from io import BytesIO
from typing import List, Optional, Tuple

from PIL import Image, ImageDraw

from ..config import MOCK_IMAGE_SIZE, SUGGESTION_COUNT
from ..core.models import PaletteColor
from ..logging_utils import log_info

# Prompt keyword -> background color
KEYWORD_COLORS: List[Tuple[Tuple[str, ...], Tuple[int, int, int]]] = [
    (("sunset", "orange"), (0xFF, 0x63, 0x47)),
    (("ocean", "blue"), (0x41, 0x69, 0xE1)),
    (("forest", "green"), (0x22, 0x8B, 0x22)),
    (("night", "dark"), (0x2F, 0x4F, 0x4F)),
]

MOCK_PALETTE = [
    PaletteColor(hex="#4169E1", rgb="65, 105, 225", cmyk="71, 53, 0, 12", name="Royal Blue"),
    PaletteColor(hex="#FF6347", rgb="255, 99, 71", cmyk="0, 61, 72, 0", name="Tomato"),
    PaletteColor(hex="#F5F5F5", rgb="245, 245, 245", cmyk="0, 0, 0, 4", name="White Smoke"),
]


def _background_for(prompt: str, rng: random.Random) -> Tuple[int, int, int]:
    lowered = prompt.lower()
    for keywords, color in KEYWORD_COLORS:
        if any(k in lowered for k in keywords):
            return color
    return (rng.randrange(256), rng.randrange(256), rng.randrange(256))


def render_mock_image(prompt: str, size: Tuple[int, int] = MOCK_IMAGE_SIZE,
                      seed: Optional[int] = None) -> bytes:
    """
    Draw a simple patterned PNG for a prompt.

    The same prompt and seed always give the same image.
    """
    rng = random.Random(seed if seed is not None else prompt)
    width, height = size
    img = Image.new("RGB", size, _background_for(prompt, rng))
    draw = ImageDraw.Draw(img)

    for _ in range(12):
        x0, y0 = rng.randrange(width), rng.randrange(height)
        radius = rng.randrange(8, max(9, width // 6))
        fill = (rng.randrange(256), rng.randrange(256), rng.randrange(256))
        draw.ellipse((x0 - radius, y0 - radius, x0 + radius, y0 + radius), fill=fill)

    draw.rectangle((0, height - 28, width, height), fill=(0, 0, 0))
    draw.text((8, height - 22), "MOCK", fill=(255, 255, 255))

    buf = BytesIO()
    img.save(buf, format="PNG")
    return buf.getvalue()


class MockImageService:
    """
    Image service that never touches the network.

    Args:
        delay: Seconds to sleep per generation, to mimic model latency.
        fail_with: Exception raised by generate() instead of rendering.
        return_none: Make generate() return None (benign failure).
        payload: Fixed bytes returned by generate() instead of rendering.
    """

    def __init__(self, delay: float = 0.0, fail_with: Optional[Exception] = None,
                 return_none: bool = False, payload: Optional[bytes] = None):
        self.delay = delay
        self.fail_with = fail_with
        self.return_none = return_none
        self.payload = payload
        self.calls: List[str] = []

    @property
    def is_configured(self) -> bool:
        return True

    def generate(self, prompt: str) -> Optional[bytes]:
        self.calls.append(prompt)
        if self.delay:
            time.sleep(self.delay)
        if self.fail_with is not None:
            raise self.fail_with
        if self.return_none:
            return None
        if self.payload is not None:
            return self.payload
        data = render_mock_image(prompt)
        log_info(f"[MOCK AI] Generated mock image ({len(data)} bytes)")
        return data

    def get_suggestions(self, category: str, style: Optional[str] = None,
                        theme: Optional[str] = None) -> List[str]:
        subject = category.strip().lower() or "asset"
        moods = ["whimsical", "minimal", "retro", "futuristic", "hand-drawn", "bold"]
        return [f"A {mood} {subject} concept" for mood in moods[:SUGGESTION_COUNT]]

    def generate_palette(self, context: str) -> List[PaletteColor]:
        return list(MOCK_PALETTE)
