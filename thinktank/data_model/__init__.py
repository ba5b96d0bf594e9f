"""Shared data model primitives."""

from thinktank.data_model.base import StrictBaseModel


__all__ = ["StrictBaseModel"]
