"""
Rating Config Service

Reads and publishes versions of the rating algorithm parameters.

Versioning rules:
- The active config is the stored version with the highest number
- Before anything is stored, the built-in DEFAULT_RATING_CONFIG (version 0)
  is active
- Publishing never edits an existing row: set_config and
  activate_config_version both insert a new version
- Validation happens before any write, so a rejected config leaves the
  active version untouched

Usage:
    from app.services.rating_config import get_active_config, set_config

    config = get_active_config(db)
    new_config = set_config(db, {**config.parameters().model_dump(), "prior_weight": 50})
"""

import logging
from collections.abc import Mapping
from typing import Any

from pydantic import BaseModel
from pydantic import ValidationError as PydanticValidationError
from sqlalchemy import select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from app.exceptions import ConfigVersionNotFoundError, ValidationError
from app.models.rating_config import RatingConfigRecord
from app.schemas.rating import (
    DEFAULT_RATING_CONFIG,
    AlgorithmType,
    RatingConfig,
    RatingConfigCreate,
)

logger = logging.getLogger(__name__)


# =============================================================================
# Reads
# =============================================================================


def get_active_config(db: Session) -> RatingConfig:
    """
    Return the active rating config.

    Args:
        db: Database session

    Returns:
        The highest stored version, or DEFAULT_RATING_CONFIG if none exists
    """
    stmt = (
        select(RatingConfigRecord)
        .order_by(RatingConfigRecord.version.desc())
        .limit(1)
    )
    record = db.execute(stmt).scalar_one_or_none()
    if record is None:
        return DEFAULT_RATING_CONFIG
    return config_from_record(record)


def get_config_version(db: Session, version: int) -> RatingConfig:
    """
    Return one specific config version.

    Raises:
        ConfigVersionNotFoundError: If the version was never published
    """
    if version == 0:
        return DEFAULT_RATING_CONFIG

    record = db.get(RatingConfigRecord, version)
    if record is None:
        raise ConfigVersionNotFoundError(version)
    return config_from_record(record)


def list_config_history(db: Session, limit: int = 50) -> list[RatingConfig]:
    """Return stored config versions, newest first."""
    stmt = (
        select(RatingConfigRecord)
        .order_by(RatingConfigRecord.version.desc())
        .limit(limit)
    )
    return [config_from_record(r) for r in db.execute(stmt).scalars().all()]


# =============================================================================
# Writes
# =============================================================================


def set_config(
    db: Session,
    new_config: RatingConfigCreate | BaseModel | Mapping[str, Any],
) -> RatingConfig:
    """
    Validate and publish a new config version.

    Args:
        db: Database session
        new_config: Complete parameter set (schema instance or mapping)

    Returns:
        The stored version

    Raises:
        ValidationError: If any field is out of range; nothing is written

    Note:
        This function commits the changes to the database.
    """
    params = validate_config(new_config)

    record = RatingConfigRecord(**params.model_dump(mode="json"))
    try:
        db.add(record)
        db.commit()
    except SQLAlchemyError:
        db.rollback()
        raise
    db.refresh(record)

    logger.info(
        f"Published rating config version {record.version} "
        f"(algorithm={record.algorithm_type})"
    )
    return config_from_record(record)


def activate_config_version(db: Session, version: int) -> RatingConfig:
    """
    Make an older parameter set active again.

    The old parameters are re-published as a new version, so ratings
    computed since then are still detected as stale.

    Raises:
        ConfigVersionNotFoundError: If the version does not exist
        ValidationError: If the old parameters no longer pass validation
    """
    previous = get_config_version(db, version)
    logger.info(f"Re-activating rating config version {version}")
    return set_config(db, previous)


def validate_config(
    new_config: RatingConfigCreate | BaseModel | Mapping[str, Any],
) -> RatingConfigCreate:
    """
    Validate a parameter set against the documented bounds.

    Raises:
        ValidationError: Naming every offending field
    """
    if isinstance(new_config, BaseModel):
        data = new_config.model_dump(exclude={"version", "created_at"})
    else:
        data = dict(new_config)

    try:
        return RatingConfigCreate.model_validate(data)
    except PydanticValidationError as exc:
        error = ValidationError.from_pydantic(exc)
        logger.warning(f"Rejected rating config: {error}")
        raise error from exc


# =============================================================================
# Conversion
# =============================================================================


def config_from_record(record: RatingConfigRecord) -> RatingConfig:
    """
    Convert a stored row to a RatingConfig without re-validating it.

    Stored values are used as they are, even if the bounds have been
    tightened since they were written. An algorithm name the engine no
    longer knows is kept as a plain string and rejected at computation.
    """
    return RatingConfig.model_construct(
        algorithm_type=_algorithm_or_raw(record.algorithm_type),
        prior_mean=record.prior_mean,
        prior_weight=record.prior_weight,
        likes_alpha=record.likes_alpha,
        likes_max_weight=record.likes_max_weight,
        min_text_weight=record.min_text_weight,
        time_decay_enabled=record.time_decay_enabled,
        time_decay_half_life=record.time_decay_half_life,
        version=record.version,
        created_at=record.created_at,
    )


def _algorithm_or_raw(value: str) -> AlgorithmType | str:
    try:
        return AlgorithmType(value)
    except ValueError:
        return value
