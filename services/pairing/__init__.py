"""Pairing image rendering exports."""

from .renderer import DATA_URL_PREFIX, PairingRenderer, render_qr_data_url

__all__ = [
    "DATA_URL_PREFIX",
    "PairingRenderer",
    "render_qr_data_url",
]
