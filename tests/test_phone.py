"""Tests for phone canonicalisation."""

import pytest

from leadwire.domain.phone import normalize_phone, phone_suffix


class TestNormalizePhone:
    @pytest.mark.parametrize(
        "raw",
        [
            "+55 (11) 90000-1111",
            "5511900001111",
            "11900001111",
            "5511900001111@s.whatsapp.net",
        ],
    )
    def test_formats_converge(self, raw):
        assert normalize_phone(raw) == "5511900001111"

    def test_empty_is_none(self):
        assert normalize_phone(None) is None
        assert normalize_phone("") is None
        assert normalize_phone("abc") is None

    def test_short_number_kept_as_digits(self):
        assert normalize_phone("9000-1111") == "90001111"

    def test_landline_with_area_code_gets_prefix(self):
        assert normalize_phone("(11) 3000-1111") == "551130001111"


class TestPhoneSuffix:
    def test_last_nine_digits(self):
        assert phone_suffix("+55 11 90000-1111") == "900001111"

    def test_suffix_ignores_country_code(self):
        assert phone_suffix("11900001111") == phone_suffix("5511900001111")

    def test_too_short(self):
        assert phone_suffix("12345") is None
        assert phone_suffix(None) is None
