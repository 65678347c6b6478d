"""Miscellaneous utility functions."""

from collections import Counter

import numpy as np
import pandas as pd
import wrapt

from .exceptions import InsufficientDataError, InvalidRecordError


def _listify(obj):
    """Wrap all non-list or tuple objects in a list.

    This provides a simple way to accept flexible arguments.
    """
    return obj if isinstance(obj, (list, tuple, type(None), np.ndarray)) else [obj]


def _is_missing(value):
    """True for None and floating-point NaN (pandas' empty cell)."""
    return value is None or (np.ndim(value) == 0 and bool(pd.isna(value)))


def _check_unique_ids(records):
    dupes = [sid for sid, count in Counter(r.study_id for r in records).items() if count > 1]
    if dupes:
        raise InvalidRecordError("Duplicate study ids in record set: {}".format(sorted(dupes)))


def requires_studies(min_k, arg="records"):
    """Decorate a method taking a record sequence so it is validated up front.

    The named argument (positional or keyword) is materialized as a tuple,
    checked for duplicate study ids, and rejected with
    :class:`~anxmeta.exceptions.InsufficientDataError` when it holds fewer
    than ``min_k`` studies.
    """

    @wrapt.decorator
    def wrapper(wrapped, instance, args, kwargs):
        args = list(args)
        if arg in kwargs:
            records = kwargs[arg] = tuple(kwargs[arg])
        else:
            records = args[0] = tuple(args[0])
        _check_unique_ids(records)
        if len(records) < min_k:
            raise InsufficientDataError(
                "{} requires at least {} studies; got {}.".format(
                    wrapped.__qualname__, min_k, len(records)
                )
            )
        return wrapped(*args, **kwargs)

    return wrapper
