"""Error taxonomy shared by the ingestion and deletion services.

Every error carries a ``kind`` (stable, machine readable) and the HTTP status
the API layer answers with.
"""

from __future__ import annotations


class XrpicError(Exception):
    kind = "Internal"
    status_code = 500

    def __init__(self, message: str, *, index: int | None = None):
        super().__init__(message)
        self.message = message
        self.index = index


class BadRequestError(XrpicError):
    kind = "BadRequest"
    status_code = 400


class UnsupportedDeleteTypeError(BadRequestError):
    pass


class PathOutsideRootError(BadRequestError):
    pass


class UnauthorizedError(XrpicError):
    kind = "Unauthorized"
    status_code = 401


class UnsupportedTypeError(XrpicError):
    kind = "UnsupportedType"
    status_code = 400

    def __init__(self, content_type: str):
        super().__init__(f"unsupported file type: {content_type}")
        self.content_type = content_type


class SizeExceededError(XrpicError):
    kind = "SizeExceeded"
    status_code = 413

    def __init__(self, size: int, limit: int):
        super().__init__(f"file size {size} exceeds maximum allowed size of {limit} bytes")
        self.size = size
        self.limit = limit


class NotFoundError(XrpicError):
    kind = "NotFound"
    status_code = 404


class NotAFileError(XrpicError):
    kind = "NotAFile"
    status_code = 400


class IoReadError(XrpicError):
    kind = "IoRead"


class IoWriteError(XrpicError):
    kind = "IoWrite"


class IoStatError(XrpicError):
    kind = "IoStat"


class IoRemoveError(XrpicError):
    kind = "IoRemove"


class IoRenameError(XrpicError):
    kind = "IoRename"


class NotImplementedUploadError(XrpicError):
    kind = "NotImplemented"
    status_code = 501
