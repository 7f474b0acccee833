import base64
import io

import qrcode


def to_png(data: str) -> bytes:
    qr = qrcode.QRCode(
        version=None,
        error_correction=qrcode.constants.ERROR_CORRECT_M,
        box_size=10,
        border=2,
    )
    qr.add_data(data)
    qr.make(fit=True)

    img = qr.make_image(fill_color="black", back_color="white")
    buf = io.BytesIO()
    img.save(buf, format="PNG")
    return buf.getvalue()


def to_data_url(data: str) -> str:
    """PNG barcode of ``data`` as a ``data:`` URL the dashboard can render directly."""
    encoded = base64.b64encode(to_png(data)).decode("ascii")
    return f"data:image/png;base64,{encoded}"
