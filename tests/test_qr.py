import base64

from school_attendance.infrastructure.qr import to_data_url, to_png

PNG_MAGIC = b"\x89PNG\r\n\x1a\n"


def test_to_png():
    assert to_png("abc").startswith(PNG_MAGIC)


def test_to_data_url():
    url = to_data_url("Zx9-token")
    prefix = "data:image/png;base64,"
    assert url.startswith(prefix)
    assert base64.b64decode(url[len(prefix):]).startswith(PNG_MAGIC)
