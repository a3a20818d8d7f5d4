from __future__ import annotations
import logging
from typing import Any, Optional

from .accessor import PathLike, PropertyAccessor
from .errors import CopyError, NoSuchPropertyError, PropertyError
from .kinds import DYNA_CLASS_PROPERTY

logger = logging.getLogger(__name__)


def copy_properties(target: Any, source: Any, accessor: Optional[PropertyAccessor] = None) -> None:
    """Copy every readable property of ``source`` onto ``target``, converting as needed.

    Names are visited in the source's declared order and treated as literal single steps.
    Names the target cannot write are skipped. The first failing property aborts the copy
    with CopyError; properties written before it stay written.
    """
    if target is None or source is None:
        raise ValueError("copy_properties needs both a target and a source")
    acc = accessor or PropertyAccessor()
    snap = acc.registry.snapshot()
    copied = 0
    for name in acc.property_names(source):
        if name == DYNA_CLASS_PROPERTY:
            continue
        if not acc.is_writeable_simple(target, name):
            logger.debug("copy: '%s' not writeable on %s, skipped", name, type(target).__name__)
            continue
        try:
            value = acc.read_simple(source, name)
            acc.write_simple(target, name, value, snap)
        except PropertyError as e:
            raise CopyError(name, e) from e
        copied += 1
    logger.debug("copy: %d properties from %s to %s", copied, type(source).__name__, type(target).__name__)


def copy_property(target: Any, path: PathLike, value: Any, accessor: Optional[PropertyAccessor] = None) -> bool:
    """Set one path on ``target`` with conversion. Returns False when the property does not exist there."""
    acc = accessor or PropertyAccessor()
    if not acc.is_writeable(target, path):
        logger.debug("copy_property: '%s' skipped on %s", path, type(target).__name__)
        return False
    try:
        acc.set(target, path, value)
    except NoSuchPropertyError:
        return False
    return True
