"""
Tests for Layer 3 — MRZ formats, correction, check digits and parsing.
"""
from datetime import date

import pytest

from layer3_mrz import (
    CharClass,
    FieldType,
    HolderName,
    MRZFormat,
    MRZParser,
    compute_check_digit,
    correct,
    correct_field,
    detect_format,
    parse_names,
    resolve_century,
    verify
)


def replace_char(line, index, char):
    return line[:index] + char + line[index + 1:]


class TestFormatDetection:
    """Test format detection by line geometry."""

    def test_td3(self, sample_mrz_td3):
        assert detect_format(sample_mrz_td3) is MRZFormat.TD3

    def test_td1(self, sample_mrz_td1):
        assert detect_format(sample_mrz_td1) is MRZFormat.TD1

    def test_td2(self, sample_mrz_td2):
        assert detect_format(sample_mrz_td2) is MRZFormat.TD2

    def test_visas_by_document_code(self, sample_mrz_mrva, sample_mrz_mrvb):
        """Test a leading 'V' selects the visa layouts."""
        assert detect_format(sample_mrz_mrva) is MRZFormat.MRVA
        assert detect_format(sample_mrz_mrvb) is MRZFormat.MRVB

    def test_wrong_width(self, sample_mrz_td3):
        """Test no fuzzy matching on structure."""
        assert detect_format([line[:43] for line in sample_mrz_td3]) is None

    def test_uneven_lines(self, sample_mrz_td3):
        assert detect_format([sample_mrz_td3[0], sample_mrz_td3[1][:40]]) is None

    def test_wrong_line_count(self, sample_mrz_td3):
        assert detect_format(sample_mrz_td3[:1]) is None
        assert detect_format(sample_mrz_td3 * 2) is None
        assert detect_format([]) is None

    @pytest.mark.parametrize("mrz_format", list(MRZFormat))
    def test_fields_fit_the_lines(self, mrz_format):
        """Test every descriptor lies inside its line and none overlap."""
        used = set()
        for descriptor in mrz_format.fields:
            assert 0 <= descriptor.line < mrz_format.line_count
            assert descriptor.end <= mrz_format.line_width
            for column in range(descriptor.start, descriptor.end):
                assert (descriptor.line, column) not in used
                used.add((descriptor.line, column))

    @pytest.mark.parametrize("mrz_format", list(MRZFormat))
    def test_check_fields_exist(self, mrz_format):
        """Test every checked field has its check digit and composite names resolve."""
        names = {d.name for d in mrz_format.fields}
        for descriptor in mrz_format.fields:
            if descriptor.checked:
                assert descriptor.check_field in names
        for name in mrz_format.composite:
            assert name in names
        assert ("composite_check" in names) == bool(mrz_format.composite)


class TestOCRCorrection:
    """Test letter/digit confusion correction."""

    def test_letters_in_numeric_context(self):
        assert correct("69O8O6", CharClass.DIGIT) == "690806"
        assert correct("IZSGBQD", CharClass.DIGIT) == "1256800"

    def test_digits_in_alpha_context(self):
        assert correct("ERIKSS0N", CharClass.LETTER) == "ERIKSSON"
        assert correct("UT0", CharClass.LETTER) == "UTO"

    def test_filler_never_substituted(self):
        assert correct("<<<", CharClass.DIGIT) == "<<<"
        assert correct("<<<", CharClass.LETTER) == "<<<"

    def test_alphanumeric_fields_untouched(self):
        assert correct_field("L898902C0", FieldType.ALPHANUMERIC) == "L898902C0"

    @pytest.mark.parametrize("value", ["L898902C<3", "ERIKSS0N<<ANNA", "O1I2Z5S6G8B", "<<<"])
    @pytest.mark.parametrize("char_class", list(CharClass))
    def test_idempotent(self, value, char_class):
        """Test correcting twice equals correcting once."""
        once = correct(value, char_class)
        assert correct(once, char_class) == once

    def test_no_op_on_correct_input(self):
        assert correct("940623", CharClass.DIGIT) == "940623"
        assert correct("ANNA<MARIA", CharClass.LETTER) == "ANNA<MARIA"


class TestCheckDigits:
    """Test ICAO 7-3-1 check digits."""

    @pytest.mark.parametrize("data,expected", [
        ("L898902C<", 3),
        ("690806", 1),
        ("940623", 6),
        ("ZE184226B<<<<<", 1),
        ("D23145890", 7),
        ("<<<<<<<<<<<<<<", 0),
    ])
    def test_known_values(self, data, expected):
        assert compute_check_digit(data) == expected

    def test_verify(self):
        assert verify("690806", "1") is True
        assert verify("690806", "2") is False

    def test_filler_check_digit(self):
        """Test filler skips optional checks and fails mandatory ones."""
        assert verify("<<<<<<<<<<<<<<", "<", optional=True) is None
        assert verify("690806", "<") is False

    def test_malformed_input_is_invalid(self):
        """Test malformed characters never raise."""
        assert verify("69#806", "1") is False
        assert verify("690806", "X") is False
        assert verify("690806", "") is False

    def test_invalid_character_raises_on_compute(self):
        with pytest.raises(ValueError):
            compute_check_digit("ab")


class TestDates:
    """Test two-digit year resolution."""

    def test_birth_dates_never_in_future(self):
        today = date(2026, 1, 1)
        assert resolve_century(69, 0, today) == 1969
        assert resolve_century(26, 0, today) == 2026
        assert resolve_century(27, 0, today) == 1927
        assert resolve_century(5, 0, today) == 2005

    def test_expiry_dates_up_to_twenty_years_ahead(self):
        today = date(2026, 1, 1)
        assert resolve_century(94, 20, today) == 1994
        assert resolve_century(34, 20, today) == 2034
        assert resolve_century(46, 20, today) == 2046
        assert resolve_century(47, 20, today) == 1947


class TestNames:
    """Test name field decoding."""

    def test_primary_and_secondary(self):
        name = parse_names("ERIKSSON<<ANNA<MARIA<<<<<<<")
        assert name == HolderName("ERIKSSON", ("ANNA", "MARIA"))
        assert name.components == ("ERIKSSON", "ANNA", "MARIA")
        assert str(name) == "ANNA MARIA ERIKSSON"

    def test_compound_surname(self):
        name = parse_names("VAN<DER<BERG<<JAN<<<<")
        assert name.surname == "VAN DER BERG"
        assert name.given_names == ("JAN",)

    def test_surname_only(self):
        assert parse_names("MONONYM<<<<<<") == HolderName("MONONYM", ())

    def test_empty(self):
        assert parse_names("<<<<<<") is None


class TestTD3Parsing:
    """Test the ICAO TD3 specimen end to end."""

    def test_specimen(self, parser, sample_mrz_td3):
        result = parser.parse(sample_mrz_td3)

        assert result.format is MRZFormat.TD3
        assert result.surname == "ERIKSSON"
        assert result.given_names == ("ANNA", "MARIA")
        assert result.document_number == "L898902C"
        assert result.nationality == "UTO"
        assert result.issuing_country == "UTO"
        assert result.document_type == "P"
        assert result.birth_date == date(1969, 8, 6)
        assert result.sex == "F"
        assert result.expiry_date == date(1994, 6, 23)
        assert result.optional_data == "ZE184226B"
        assert result.all_check_digits_valid is True
        assert result.invalid_fields == []

    def test_field_check_outcomes(self, parser, sample_mrz_td3):
        result = parser.parse(sample_mrz_td3)
        assert result["document_number"].check_digit_valid is True
        assert result["birth_date"].check_digit_valid is True
        assert result["expiry_date"].check_digit_valid is True
        assert result["optional_data"].check_digit_valid is True
        assert result["composite_check"].check_digit_valid is True
        assert result["nationality"].check_digit_valid is None

    def test_wrong_document_number_check_digit(self, parser, sample_mrz_td3):
        """Test a wrong check digit flags the result but decoding continues."""
        lines = [sample_mrz_td3[0], replace_char(sample_mrz_td3[1], 9, "4")]
        result = parser.parse(lines)

        assert result.all_check_digits_valid is False
        assert result["document_number"].check_digit_valid is False
        assert "document_number" in result.invalid_fields
        assert result.surname == "ERIKSSON"
        assert result.document_number == "L898902C"
        assert result.birth_date == date(1969, 8, 6)
        assert result.expiry_date == date(1994, 6, 23)

    @pytest.mark.parametrize("index,char,field", [
        (2, "7", "document_number"),
        (18, "7", "birth_date"),
        (24, "7", "expiry_date"),
        (30, "9", "optional_data"),
    ])
    def test_single_character_mutation(self, parser, sample_mrz_td3, index, char, field):
        """Test mutating a protected field without fixing its check digit."""
        lines = [sample_mrz_td3[0], replace_char(sample_mrz_td3[1], index, char)]
        result = parser.parse(lines)

        assert result[field].check_digit_valid is False
        assert result.all_check_digits_valid is False

    def test_ocr_confusions_corrected(self, parser, sample_mrz_td3):
        """Test O/0 confusions are fixed before validation."""
        line1 = sample_mrz_td3[0].replace("ERIKSSON", "ERIKSS0N")
        line2 = replace_char(sample_mrz_td3[1], 15, "O")   # birth date '0'
        line2 = replace_char(line2, 12, "0")                # nationality 'O'
        result = parser.parse([line1, line2])

        assert result.surname == "ERIKSSON"
        assert result.nationality == "UTO"
        assert result.birth_date == date(1969, 8, 6)
        assert result["birth_date"].raw == "69O806"
        assert result["birth_date"].corrected == "690806"
        assert result.all_check_digits_valid is True

    def test_correction_disabled(self, reference_date, sample_mrz_td3):
        line2 = replace_char(sample_mrz_td3[1], 15, "O")
        result = MRZParser(ocr_correction=False, reference_date=reference_date).parse(
            [sample_mrz_td3[0], line2]
        )
        assert result.birth_date is None
        assert result.all_check_digits_valid is False

    def test_unused_optional_data_with_filler_check(self, parser, sample_mrz_td3):
        """Test a filler check digit on empty optional data is skipped."""
        line2 = sample_mrz_td3[1][:28] + "<" * 15
        line2 = line2 + str(compute_check_digit(line2[0:10] + line2[13:20] + line2[21:43]))
        result = parser.parse([sample_mrz_td3[0], line2])

        assert result.optional_data is None
        assert result["optional_data"].check_digit_valid is None
        assert result.all_check_digits_valid is True

    def test_impossible_date(self, parser, sample_mrz_td3):
        """Test an impossible date decodes to None and fails its check."""
        line2 = replace_char(sample_mrz_td3[1], 15, "9")   # month 98
        result = parser.parse([sample_mrz_td3[0], line2])
        assert result.birth_date is None
        assert result.all_check_digits_valid is False

    @pytest.mark.parametrize("index,field", [
        (9, "document_number"),
        (13, "birth_date"),
    ])
    def test_non_ascii_digit_is_invalid(self, parser, sample_mrz_td3, index, field):
        """Test a superscript digit from OCR fails the check instead of raising."""
        line2 = replace_char(sample_mrz_td3[1], index, "²")
        result = parser.parse([sample_mrz_td3[0], line2])

        assert result is not None
        assert result[field].check_digit_valid is False
        assert result.all_check_digits_valid is False

    def test_non_ascii_digit_decodes_to_none(self, parser, sample_mrz_td3):
        line2 = replace_char(sample_mrz_td3[1], 9, "²")
        line2 = replace_char(line2, 13, "²")
        result = parser.parse([sample_mrz_td3[0], line2])

        assert result["document_number_check"].value is None
        assert result.birth_date is None

    def test_result_is_immutable(self, parser, sample_mrz_td3):
        result = parser.parse(sample_mrz_td3)
        with pytest.raises(TypeError):
            result.fields["sex"] = None
        with pytest.raises(AttributeError):
            result.all_check_digits_valid = False

    def test_to_dict(self, parser, sample_mrz_td3):
        data = parser.parse(sample_mrz_td3).to_dict()
        assert data["format"] == "TD3"
        assert data["birth_date"] == "1969-08-06"
        assert data["given_names"] == ["ANNA", "MARIA"]
        assert data["fields"]["names"]["value"] == {"surname": "ERIKSSON", "given_names": ["ANNA", "MARIA"]}
        assert data["all_check_digits_valid"] is True

    def test_unknown_geometry(self, parser):
        assert parser.parse(["P<UTO", "L898"]) is None


class TestOtherFormats:
    """Test the remaining layouts with ICAO specimens."""

    def test_td1(self, parser, sample_mrz_td1):
        result = parser.parse(sample_mrz_td1)

        assert result.format is MRZFormat.TD1
        assert result.document_type == "I"
        assert result.document_number == "D23145890"
        assert result.birth_date == date(1974, 8, 12)
        assert result.expiry_date == date(2012, 4, 15)
        assert result.sex == "F"
        assert result.nationality == "UTO"
        assert result.surname == "ERIKSSON"
        assert result.given_names == ("ANNA", "MARIA")
        assert result.all_check_digits_valid is True

    def test_td1_composite_mismatch(self, parser, sample_mrz_td1):
        lines = list(sample_mrz_td1)
        lines[1] = replace_char(lines[1], 29, "5")
        result = parser.parse(lines)

        assert result["composite_check"].check_digit_valid is False
        assert result["document_number"].check_digit_valid is True
        assert result.all_check_digits_valid is False

    def test_td2(self, parser, sample_mrz_td2):
        result = parser.parse(sample_mrz_td2)

        assert result.format is MRZFormat.TD2
        assert result.document_number == "D23145890"
        assert result.birth_date == date(1974, 8, 12)
        assert result.expiry_date == date(2012, 4, 15)
        assert result.optional_data is None
        assert result.all_check_digits_valid is True

    def test_mrva(self, parser, sample_mrz_mrva):
        result = parser.parse(sample_mrz_mrva)

        assert result.format is MRZFormat.MRVA
        assert result.document_type == "V"
        assert result.document_number == "L8988901C"
        assert result.nationality == "XXX"
        assert result.birth_date == date(1940, 9, 7)
        assert result.expiry_date == date(1996, 12, 10)
        assert result.optional_data == "6ZE184226B"
        assert "composite_check" not in result.fields
        assert result.all_check_digits_valid is True

    def test_mrvb(self, parser, sample_mrz_mrvb):
        result = parser.parse(sample_mrz_mrvb)

        assert result.format is MRZFormat.MRVB
        assert result.document_number == "L8988901C"
        assert result.all_check_digits_valid is True

    @pytest.mark.parametrize("fixture_name", [
        "sample_mrz_td1",
        "sample_mrz_td2",
        "sample_mrz_mrva",
        "sample_mrz_mrvb",
    ])
    def test_document_number_mutation(self, request, parser, fixture_name):
        """Test mutating a document number digit invalidates every layout."""
        lines = list(request.getfixturevalue(fixture_name))
        mrz_format = detect_format(lines)
        descriptor = next(d for d in mrz_format.fields if d.name == "document_number")
        column = descriptor.start + 1
        original = lines[descriptor.line][column]
        replacement = "1" if original != "1" else "2"
        lines[descriptor.line] = replace_char(lines[descriptor.line], column, replacement)

        result = parser.parse(lines)
        assert result["document_number"].check_digit_valid is False
        assert result.all_check_digits_valid is False
