import io

import pytest
import qrcode
from PIL import Image

from qrlibrary.errors import QRGenerationError
from qrlibrary.qr_generator import DATA_URL_PREFIX, QRGenerator, decode_data_url

PNG_SIGNATURE = b"\x89PNG\r\n\x1a\n"


def test_generate_returns_png_data_url():
    data_url = QRGenerator().generate("6733d0abc0123456789abcde")
    assert data_url.startswith(DATA_URL_PREFIX)
    assert decode_data_url(data_url).startswith(PNG_SIGNATURE)


def test_generate_is_deterministic():
    qr = QRGenerator()
    assert qr.generate("6733d0abc0123456789abcde") == qr.generate("6733d0abc0123456789abcde")
    assert qr.generate("6733d0abc0123456789abcde") != qr.generate("6733d0def0123456789abcde")


def test_settings_change_the_image():
    small = Image.open(io.BytesIO(QRGenerator(box_size=2, border=1).generate_png("abc")))
    large = Image.open(io.BytesIO(QRGenerator(box_size=12, border=4).generate_png("abc")))
    # version 1 symbol: 21 modules plus the border on each side
    assert small.size == (46, 46)
    assert large.size == (348, 348)


def test_empty_identifier_rejected():
    with pytest.raises(QRGenerationError):
        QRGenerator().generate("")


def test_render_failure_wrapped(monkeypatch):
    def boom(self, *args, **kwargs):
        raise RuntimeError("renderer exploded")

    monkeypatch.setattr(qrcode.QRCode, "make_image", boom)
    with pytest.raises(QRGenerationError, match="QR code generation failed"):
        QRGenerator().generate("abc")


def test_decode_data_url_rejects_other_payloads():
    with pytest.raises(ValueError):
        decode_data_url("data:image/jpeg;base64,AAAA")
    with pytest.raises(ValueError):
        decode_data_url(None)
