"""
Pairing image renderer.

Pure function: pairing payload string -> PNG data URL a browser can show
directly in an <img> tag. CPU-bound; callers run it in an executor.
"""

import base64
import io
from typing import Callable

import qrcode
from qrcode.constants import ERROR_CORRECT_M

PairingRenderer = Callable[[str], str]

DATA_URL_PREFIX = "data:image/png;base64,"


def render_qr_data_url(payload: str, box_size: int = 6, border: int = 4) -> str:
    """
    Render a pairing payload as a base64 PNG data URL.

    Raises:
        ValueError: empty payload
    """
    if not payload:
        raise ValueError("Pairing payload is empty")

    qr = qrcode.QRCode(
        error_correction=ERROR_CORRECT_M,
        box_size=box_size,
        border=border,
    )
    qr.add_data(payload)
    qr.make(fit=True)

    image = qr.make_image(fill_color="black", back_color="white")
    buffer = io.BytesIO()
    image.save(buffer)
    return DATA_URL_PREFIX + base64.b64encode(buffer.getvalue()).decode("ascii")
