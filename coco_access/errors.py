class CocoAccessError(Exception):
    """
    Base class for every error raised by coco_access
    """


class DataError(CocoAccessError, ValueError):
    """
    Malformed or inconsistent dataset collections (duplicate ids, dangling references)
    """


class NotFoundError(CocoAccessError, LookupError):
    """
    A requested id is absent from an index map
    """


class FormatError(CocoAccessError, ValueError):
    """
    Malformed mask representation (e.g. RLE counts not summing to h*w)
    """


class MismatchError(CocoAccessError, ValueError):
    """
    Result annotations reference images outside the current dataset
    """
