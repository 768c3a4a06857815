"""二维码生成."""

import base64
from io import BytesIO

import qrcode
from qrcode.image.pil import PilImage


def generate_qrcode_base64(url: str, box_size: int = 8, border: int = 2) -> str:
    """将 URL 渲染为 PNG 二维码，返回 data URL."""
    qr = qrcode.QRCode(box_size=box_size, border=border)
    qr.add_data(url)
    qr.make(fit=True)
    image = qr.make_image(image_factory=PilImage)

    buffer = BytesIO()
    image.save(buffer)
    encoded = base64.b64encode(buffer.getvalue()).decode("ascii")
    return f"data:image/png;base64,{encoded}"
