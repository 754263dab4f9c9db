"""Exceptions raised to callers of the loading and worker layers.

Engine failures and "no QR code found" are not errors; they surface as
None or an empty list.
"""


class QrScanError(RuntimeError):
    pass


class ImageLoadError(QrScanError):
    pass


class DecodeError(QrScanError):
    pass


class DecodeTimeout(QrScanError):
    pass
