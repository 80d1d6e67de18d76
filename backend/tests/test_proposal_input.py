"""
Input normalization tests.

Verifies:
- camelCase, snake_case and legacy aliases collapse to one shape
- 0 / False are kept (first non-null alias wins)
- Missing required fields are reported together
- Free text is stripped of markup
"""

from decimal import Decimal

import pytest

from app.services.identifier_service import ID_LENGTH, generate_proposal_id, is_well_formed
from app.services.package_service import derive_package, tier_label
from app.services.proposal_input import normalize_proposal_payload, pick_aliases
from app.validation import ValidationError

from conftest import proposal_payload


class TestAliases:
    def test_camel_case_payload(self):
        data = normalize_proposal_payload(proposal_payload())
        assert data.contact_name == "Jane Doe"
        assert data.company == "Acme Roofing"
        assert data.email == "jane@acme.test"
        assert data.tier == "professional"
        assert data.tier_price == Decimal("9500.00")
        assert data.total_price == Decimal("12500.00")
        assert data.extra_trainees == 2
        assert data.videography is True

    def test_snake_case_and_legacy_names(self):
        data = normalize_proposal_payload({
            "contact_name": "Bob Smith",
            "company_name": "Smith Co",
            "contact_email": "bob@smith.test",
            "extra_kits": "3",
            "let_client_choose": "true",
        })
        assert data.contact_name == "Bob Smith"
        assert data.company == "Smith Co"
        assert data.email == "bob@smith.test"
        assert data.extra_kits == 3
        assert data.let_client_choose is True
        assert data.tier is None

    def test_first_non_null_alias_wins(self):
        picked = pick_aliases({"extraTrainees": 0, "extra_trainees": 5, "onRoofDay": None, "on_roof_day": True})
        assert picked["extra_trainees"] == 0
        assert picked["on_roof_day"] is True

    def test_false_and_zero_are_preserved(self):
        data = normalize_proposal_payload(proposal_payload(videography=False, extraTrainees=0, totalPrice=0))
        assert data.videography is False
        assert data.extra_trainees == 0
        assert data.total_price == Decimal("0.00")


class TestValidation:
    def test_missing_required_fields_reported_together(self):
        with pytest.raises(ValidationError) as exc:
            normalize_proposal_payload({"tier": "regional"})
        assert "Missing required fields" in str(exc.value)
        assert set(exc.value.fields) >= {"contact_name", "company", "email"}

    def test_non_object_payload(self):
        with pytest.raises(ValidationError):
            normalize_proposal_payload(["not", "a", "dict"])

    @pytest.mark.parametrize(
        "overrides,field",
        [
            ({"email": "not-an-email"}, "email"),
            ({"tier": "platinum"}, "tier"),
            ({"extraTrainees": -1}, "extra_trainees"),
            ({"extraKits": 1.5}, "extra_kits"),
            ({"totalPrice": "abc"}, "total_price"),
            ({"tierPrice": -10}, "tier_price"),
            ({"tracks": "Commercial"}, "tracks"),
            ({"vimeoUrl": "javascript:alert(1)"}, "vimeo_url"),
            ({"videography": "maybe"}, "videography"),
        ],
    )
    def test_invalid_field(self, overrides, field):
        with pytest.raises(ValidationError) as exc:
            normalize_proposal_payload(proposal_payload(**overrides))
        assert field in exc.value.fields
        assert str(exc.value).startswith("Invalid proposal")

    def test_markup_is_stripped(self):
        data = normalize_proposal_payload(proposal_payload(
            contactName="<b>Jane</b> Doe",
            company="Acme <script>Roofing",
            tracks=["<i>Commercial</i>", "Commercial", " "],
        ))
        assert data.contact_name == "bJane/b Doe"
        assert "<" not in data.company and ">" not in data.company
        assert data.tracks == ["iCommercial/i", "Commercial"]

    def test_price_strings_with_symbols(self):
        data = normalize_proposal_payload(proposal_payload(totalPrice="$12,500.5"))
        assert data.total_price == Decimal("12500.50")

    @pytest.mark.parametrize("raw,expected", [("1.125", "1.13"), ("2.675", "2.68"), ("0.005", "0.01")])
    def test_prices_round_half_up(self, raw, expected):
        data = normalize_proposal_payload(proposal_payload(totalPrice=raw))
        assert data.total_price == Decimal(expected)


class TestIdentifiers:
    def test_generated_ids_are_url_safe_and_fixed_length(self):
        for _ in range(200):
            proposal_id = generate_proposal_id()
            assert len(proposal_id) == ID_LENGTH
            assert is_well_formed(proposal_id)

    def test_generated_ids_do_not_repeat(self):
        ids = {generate_proposal_id() for _ in range(2000)}
        assert len(ids) == 2000

    @pytest.mark.parametrize("value", [None, "", "short", "x" * 13, "has space 12", "../../etc/pa"])
    def test_malformed_ids_rejected(self, value):
        assert not is_well_formed(value)


class TestPackages:
    def test_tier_inclusions_plus_extras(self):
        package = derive_package("professional", 2, 1)
        assert package.total_trainees == 5
        assert package.total_kits == 2
        assert package.label == "Professional"

    def test_enterprise_without_extras(self):
        package = derive_package("enterprise", None, None)
        assert (package.total_trainees, package.total_kits) == (25, 4)

    def test_client_choice_has_no_package(self):
        assert derive_package(None, 3, 3) is None
        assert tier_label(None) == "Client Choice"
