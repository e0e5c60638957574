"""
Rating Config Tests

Tests for the versioned rating configuration:
- the built-in default before anything is published
- publishing new versions (monotonic, immutable history)
- bounds validation naming the offending field(s)
- history, lookup and re-activation of old versions
"""

import pytest
from pydantic import ValidationError as PydanticValidationError
from sqlalchemy.orm import Session

from app.exceptions import ConfigVersionNotFoundError, ValidationError
from app.schemas.rating import DEFAULT_RATING_CONFIG, AlgorithmType, RatingConfigCreate
from app.services.rating_config import (
    activate_config_version,
    get_active_config,
    get_config_version,
    list_config_history,
    set_config,
    validate_config,
)

# =============================================================================
# Test Data
# =============================================================================


def valid_params(**overrides) -> dict:
    """A complete, valid parameter set."""
    params = {
        "algorithm_type": "weighted_bayesian",
        "prior_mean": 7.0,
        "prior_weight": 20,
        "likes_alpha": 0.5,
        "likes_max_weight": 2.5,
        "min_text_weight": 0.4,
        "time_decay_enabled": True,
        "time_decay_half_life": 90,
    }
    params.update(overrides)
    return params


# =============================================================================
# Default Config
# =============================================================================


class TestDefaultConfig:
    """Tests for the built-in default."""

    def test_default_values(self):
        assert DEFAULT_RATING_CONFIG.algorithm_type == AlgorithmType.SIMPLE_AVERAGE
        assert DEFAULT_RATING_CONFIG.prior_mean == 7.4
        assert DEFAULT_RATING_CONFIG.prior_weight == 30
        assert DEFAULT_RATING_CONFIG.likes_alpha == 0.4
        assert DEFAULT_RATING_CONFIG.likes_max_weight == 3.0
        assert DEFAULT_RATING_CONFIG.min_text_weight == 0.3
        assert DEFAULT_RATING_CONFIG.time_decay_enabled is False
        assert DEFAULT_RATING_CONFIG.time_decay_half_life == 180
        assert DEFAULT_RATING_CONFIG.is_default

    def test_active_config_defaults_when_nothing_stored(self, db_session: Session):
        config = get_active_config(db_session)

        assert config == DEFAULT_RATING_CONFIG
        assert config.version == 0

    def test_default_is_immutable(self):
        with pytest.raises(PydanticValidationError):
            DEFAULT_RATING_CONFIG.prior_weight = 99

    def test_version_zero_lookup(self, db_session: Session):
        assert get_config_version(db_session, 0) is DEFAULT_RATING_CONFIG


# =============================================================================
# Publishing
# =============================================================================


class TestSetConfig:
    """Tests for publishing new config versions."""

    def test_publish_from_dict(self, db_session: Session):
        config = set_config(db_session, valid_params())

        assert config.version >= 1
        assert config.algorithm_type == AlgorithmType.WEIGHTED_BAYESIAN
        assert config.prior_weight == 20
        assert config.time_decay_half_life == 90
        assert config.created_at is not None

    def test_publish_from_schema(self, db_session: Session):
        params = RatingConfigCreate(**valid_params(algorithm_type="confidence_weighted"))
        config = set_config(db_session, params)

        assert config.algorithm_type == AlgorithmType.CONFIDENCE_WEIGHTED

    def test_new_version_becomes_active(self, db_session: Session):
        first = set_config(db_session, valid_params())
        second = set_config(db_session, valid_params(prior_weight=50))

        assert second.version > first.version
        active = get_active_config(db_session)
        assert active.version == second.version
        assert active.prior_weight == 50

    def test_versions_strictly_increase(self, db_session: Session):
        versions = [set_config(db_session, valid_params(prior_weight=w)).version for w in (1, 2, 3, 4)]
        assert versions == sorted(set(versions))

    def test_old_versions_are_unchanged(self, db_session: Session):
        first = set_config(db_session, valid_params(prior_mean=6.0))
        set_config(db_session, valid_params(prior_mean=8.0))

        assert get_config_version(db_session, first.version).prior_mean == 6.0

    def test_publish_active_config_parameters(self, db_session: Session):
        """A stored config (with version metadata) can be re-published as is."""
        stored = set_config(db_session, valid_params())
        again = set_config(db_session, stored)

        assert again.version > stored.version
        assert again.parameters() == stored.parameters()


# =============================================================================
# Validation
# =============================================================================


class TestConfigValidation:
    """Tests for bounds validation."""

    def test_negative_prior_weight_rejected(self, db_session: Session):
        """The error names the field and the active config is unchanged."""
        before = set_config(db_session, valid_params())

        with pytest.raises(ValidationError) as exc_info:
            set_config(db_session, valid_params(prior_weight=-5))

        assert exc_info.value.field == "prior_weight"
        assert get_active_config(db_session) == before

    def test_rejection_before_any_version_keeps_default(self, db_session: Session):
        with pytest.raises(ValidationError):
            set_config(db_session, valid_params(prior_weight=-5))

        assert get_active_config(db_session) is DEFAULT_RATING_CONFIG
        assert list_config_history(db_session) == []

    @pytest.mark.parametrize(
        "field,value",
        [
            ("prior_mean", 0.5),
            ("prior_mean", 10.5),
            ("prior_mean", float("nan")),
            ("likes_alpha", -0.1),
            ("likes_max_weight", 0.5),
            ("min_text_weight", 0),
            ("min_text_weight", 1.5),
            ("time_decay_half_life", 0),
            ("algorithm_type", "median"),
        ],
    )
    def test_out_of_range_field_named(self, field, value):
        with pytest.raises(ValidationError) as exc_info:
            validate_config(valid_params(**{field: value}))

        assert exc_info.value.field == field

    def test_every_offending_field_reported(self):
        with pytest.raises(ValidationError) as exc_info:
            validate_config(valid_params(prior_weight=-1, likes_alpha=-1))

        assert set(exc_info.value.fields) == {"prior_weight", "likes_alpha"}

    def test_missing_field_rejected(self):
        params = valid_params()
        del params["prior_mean"]

        with pytest.raises(ValidationError) as exc_info:
            validate_config(params)

        assert exc_info.value.field == "prior_mean"

    def test_unknown_field_rejected(self):
        with pytest.raises(ValidationError) as exc_info:
            validate_config(valid_params(bogus=1))

        assert exc_info.value.field == "bogus"

    def test_boundary_values_accepted(self):
        params = validate_config(
            valid_params(
                prior_mean=1,
                prior_weight=0,
                likes_alpha=0,
                likes_max_weight=1,
                min_text_weight=1,
                time_decay_half_life=1,
            )
        )
        assert params.prior_weight == 0


# =============================================================================
# History and Re-activation
# =============================================================================


class TestConfigHistory:
    """Tests for listing, looking up and re-activating versions."""

    def test_history_newest_first(self, db_session: Session):
        published = [set_config(db_session, valid_params(prior_weight=w)) for w in (10, 20, 30)]

        history = list_config_history(db_session)

        assert [c.version for c in history] == [c.version for c in reversed(published)]

    def test_history_limit(self, db_session: Session):
        for w in range(5):
            set_config(db_session, valid_params(prior_weight=w))

        assert len(list_config_history(db_session, limit=2)) == 2

    def test_unknown_version_raises(self, db_session: Session):
        with pytest.raises(ConfigVersionNotFoundError) as exc_info:
            get_config_version(db_session, 12345)

        assert exc_info.value.version == 12345

    def test_activate_republishes_as_new_version(self, db_session: Session):
        old = set_config(db_session, valid_params(prior_weight=10))
        set_config(db_session, valid_params(prior_weight=99))

        reactivated = activate_config_version(db_session, old.version)

        assert reactivated.version > old.version
        assert reactivated.prior_weight == 10
        assert get_active_config(db_session).version == reactivated.version

    def test_activate_default(self, db_session: Session):
        set_config(db_session, valid_params())

        reactivated = activate_config_version(db_session, 0)

        assert reactivated.parameters() == DEFAULT_RATING_CONFIG.parameters()
        assert not reactivated.is_default

    def test_activate_unknown_version(self, db_session: Session):
        with pytest.raises(ConfigVersionNotFoundError):
            activate_config_version(db_session, 777)
