"""Tests for anxmeta.utils."""
import numpy as np
import pytest

from anxmeta import utils
from anxmeta.exceptions import InsufficientDataError, InvalidRecordError


class _Counter:
    @utils.requires_studies(3)
    def count(self, records, extra=0):
        return len(records) + extra, type(records)


def test_listify():
    """Test anxmeta.utils._listify."""
    assert utils._listify("a") == ["a"]
    assert utils._listify(["a", "b"]) == ["a", "b"]
    assert utils._listify(None) is None


def test_is_missing():
    """Test anxmeta.utils._is_missing."""
    assert utils._is_missing(None)
    assert utils._is_missing(np.nan)
    assert not utils._is_missing(0)
    assert not utils._is_missing("group")


def test_requires_studies(small_records):
    """Test the record-validating decorator."""
    counter = _Counter()
    assert counter.count(iter(small_records)) == (4, tuple)
    assert counter.count(records=small_records, extra=1) == (5, tuple)

    with pytest.raises(InsufficientDataError):
        counter.count(small_records[:2])
    with pytest.raises(InvalidRecordError):
        counter.count(list(small_records) + [small_records[0]])
