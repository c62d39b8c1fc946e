"""
QR code generation for catalog entries.

Each book gets a QR code that encodes nothing but its identifier, so that a
student's scanner can turn the code straight into the ``bookId`` of an issue
or return request. Codes are rendered as PNG with Pillow and stored on the
book record as a ``data:`` URL the frontend can drop into an ``<img>`` tag.
"""

import base64
import io
import logging

import qrcode
from qrcode.constants import ERROR_CORRECT_H, ERROR_CORRECT_L, ERROR_CORRECT_M, ERROR_CORRECT_Q

from .config import settings
from .errors import QRGenerationError

logger = logging.getLogger(__name__)

DATA_URL_PREFIX = "data:image/png;base64,"

_ERROR_CORRECTION = {
    "L": ERROR_CORRECT_L,
    "M": ERROR_CORRECT_M,
    "Q": ERROR_CORRECT_Q,
    "H": ERROR_CORRECT_H,
}


class QRGenerator:
    """
    Renders identifiers as QR code images.

    Output depends only on the identifier and the settings below, so the same
    identifier always yields the same payload.
    """

    def __init__(self, box_size: int | None = None, border: int | None = None,
                 error_correction: str | None = None):
        self.settings = {
            'box_size': box_size or settings.qr_box_size,
            'border': settings.qr_border if border is None else border,
            'error_correction': _ERROR_CORRECTION[(error_correction or settings.qr_error_correction).upper()],
            'fill_color': 'black',
            'back_color': 'white',
        }

    def generate_png(self, identifier: str) -> bytes:
        """
        Render ``identifier`` as a PNG image.

        Args:
            identifier (str): Value to encode, normally a book id

        Returns:
            bytes: PNG file contents
        """
        if not identifier:
            raise QRGenerationError("Cannot generate a QR code for an empty identifier")
        try:
            qr = qrcode.QRCode(
                version=None,
                error_correction=self.settings['error_correction'],
                box_size=self.settings['box_size'],
                border=self.settings['border'],
            )
            qr.add_data(identifier)
            qr.make(fit=True)
            img = qr.make_image(
                fill_color=self.settings['fill_color'],
                back_color=self.settings['back_color'],
            )
            buffer = io.BytesIO()
            img.save(buffer, format='PNG')
            return buffer.getvalue()
        except Exception as e:
            logger.error(f"QR code generation failed for {identifier}: {e}")
            raise QRGenerationError("QR code generation failed") from e

    def generate(self, identifier: str) -> str:
        """Render ``identifier`` and return it as a PNG data URL."""
        png = self.generate_png(identifier)
        logger.debug(f"QR code generated for {identifier} ({len(png)} bytes)")
        return DATA_URL_PREFIX + base64.b64encode(png).decode('ascii')


def decode_data_url(data_url: str) -> bytes:
    """Return the PNG bytes held in a data URL produced by ``QRGenerator.generate``."""
    if not data_url or not data_url.startswith(DATA_URL_PREFIX):
        raise ValueError("Not a PNG data URL")
    return base64.b64decode(data_url[len(DATA_URL_PREFIX):])
