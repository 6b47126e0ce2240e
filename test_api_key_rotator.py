import pytest

from errors import ConfigurationError
from utils.api_key_rotator import APIKeyRotator, load_api_keys


class TestLoadApiKeys:
    def test_splits_and_trims_preserving_order(self):
        assert load_api_keys(" a , b,c ") == ("a", "b", "c")

    def test_keeps_duplicates(self):
        assert load_api_keys("a,a,b") == ("a", "a", "b")

    def test_drops_blank_entries(self):
        assert load_api_keys("a,,b,") == ("a", "b")

    @pytest.mark.parametrize("raw", [None, "", "   "])
    def test_missing_value_is_a_configuration_error(self, raw):
        with pytest.raises(ConfigurationError):
            load_api_keys(raw)

    def test_only_delimiters_is_a_configuration_error(self):
        with pytest.raises(ConfigurationError):
            load_api_keys(" , ,")

    def test_configuration_error_is_an_environment_error(self):
        with pytest.raises(EnvironmentError):
            load_api_keys(None)


class TestAPIKeyRotator:
    def test_empty_pool_rejected(self):
        with pytest.raises(ValueError):
            APIKeyRotator([])

    def test_starts_at_first_slot(self):
        rotator = APIKeyRotator(["a", "b"])
        assert rotator.current_slot() == 0
        assert len(rotator) == 2

    def test_key_at_wraps(self):
        rotator = APIKeyRotator(["a", "b", "c"])
        assert rotator.key_at(4) == "b"

    def test_advance_from_wraps_to_first_slot(self):
        rotator = APIKeyRotator(["a", "b", "c"])
        assert rotator.advance_from(2) == 0
        assert rotator.current_slot() == 0

    def test_pin_sets_cursor(self):
        rotator = APIKeyRotator(["a", "b", "c"])
        rotator.pin(2)
        assert rotator.current_slot() == 2

    def test_pool_is_immutable(self):
        keys = ["a", "b"]
        rotator = APIKeyRotator(keys)
        keys.append("c")
        assert len(rotator) == 2
        assert isinstance(rotator.api_keys, tuple)
