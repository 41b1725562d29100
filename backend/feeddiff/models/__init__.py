from feeddiff.models.keylog import RequestLog, KeyLog

__all__ = [
    'RequestLog',
    'KeyLog',
]
