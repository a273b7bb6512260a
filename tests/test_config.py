"""Tests for run configuration, partner selection and price detection."""

from datetime import datetime
from unittest.mock import patch

import pytest

from scv_report.errors import ConfigurationError
from scv_report.schema.config import (
    ReportConfiguration,
    StorageLocations,
    detect_has_pricing,
    normalize_options,
    partner_for,
)
from scv_report.schema.models import DatasetSizeMode, Product


def _products(*prices):
    return [Product(id_product=f"p{i}", price=price) for i, price in enumerate(prices, 1)]


# ---------------------------------------------------------------------------
# Partner selection
# ---------------------------------------------------------------------------

class TestPartner:
    def test_niq_has_every_capability(self):
        partner = partner_for("niq_store_01")
        assert partner.code == "niq"
        assert partner.has_basket_metrics
        assert partner.has_interaction_average
        assert partner.has_funnel_sheets

    def test_other_codes_are_default(self):
        partner = partner_for("acme_x1")
        assert partner.code == "acm"
        assert not partner.has_basket_metrics
        assert not partner.has_funnel_sheets

    def test_prefix_must_be_exact(self):
        assert not partner_for("NIQ_store").has_funnel_sheets
        assert not partner_for("ni").has_funnel_sheets


# ---------------------------------------------------------------------------
# Options
# ---------------------------------------------------------------------------

class TestNormalizeOptions:
    def test_camel_case_aliases(self):
        opts = normalize_options({"isFinal": False, "hasPrices": True,
                                  "largeDataSet": True, "priceThreshold": 0.3})
        assert opts == {"is_final": False, "has_prices": True,
                        "large_dataset": True, "price_threshold": 0.3}

    def test_none_values_dropped(self):
        assert normalize_options({"hasPrices": None}) == {}

    def test_none_options(self):
        assert normalize_options(None) == {}

    def test_collects_every_error(self):
        with pytest.raises(ConfigurationError) as exc_info:
            normalize_options({"isFinal": "yes", "bogus": 1, "priceThreshold": 2})
        message = exc_info.value.message
        assert "isFinal must be a boolean" in message
        assert "Unknown option: bogus" in message
        assert "priceThreshold" in message

    def test_not_a_mapping(self):
        with pytest.raises(ConfigurationError):
            normalize_options(["isFinal"])


class TestReportConfiguration:
    def test_defaults(self):
        config = ReportConfiguration("acme_x1")
        assert config.is_final is True
        assert config.has_prices is None
        assert config.has_findability is True
        assert config.is_aoi is False
        assert config.dataset_size_mode is DatasetSizeMode.STANDARD
        assert config.large_dataset_threshold == 1_000_000
        assert config.price_threshold == 0.5

    def test_from_options_large_dataset(self):
        config = ReportConfiguration.from_options("acme_x1", {"largeDataSet": True})
        assert config.large_dataset

    def test_empty_project_id(self):
        with pytest.raises(ConfigurationError):
            ReportConfiguration("  ")

    def test_price_threshold_out_of_range(self):
        with pytest.raises(ConfigurationError):
            ReportConfiguration("acme_x1", price_threshold=1.5)

    def test_mode_from_string(self):
        config = ReportConfiguration("acme_x1", dataset_size_mode="large")
        assert config.dataset_size_mode is DatasetSizeMode.LARGE

    def test_enter_large_dataset_mode_once(self):
        config = ReportConfiguration("acme_x1")
        assert config.enter_large_dataset_mode() is True
        assert config.large_dataset
        assert config.enter_large_dataset_mode() is False

    def test_threshold_boundary_is_strict(self):
        config = ReportConfiguration("acme_x1", large_dataset_threshold=1000)
        assert not config.exceeds_large_dataset_threshold(20, 10)   # 1000 cells
        assert config.exceeds_large_dataset_threshold(21, 10)       # 1050 cells


# ---------------------------------------------------------------------------
# Naming and locations
# ---------------------------------------------------------------------------

class TestNaming:
    def test_storage_locations(self):
        locations = StorageLocations.for_project("acme_x1")
        assert locations.products == "report/input/acme_x1/acme_x1-products.json"
        assert locations.scv == "report/input/acme_x1/acme_x1-scv.json"
        assert locations.findability == "report/input/acme_x1/acme_x1-find.json"
        assert locations.heatmaps == "report/input/acme_x1/acme_x1-heatmapsData.json"

    def test_final_filename(self):
        config = ReportConfiguration("acme_x1")
        name = config.report_filename(datetime(2024, 3, 5, 9, 7))
        assert name == "acme_x1-final_data_set-03052024-09.07.xlsx"

    def test_interim_filename(self):
        config = ReportConfiguration("acme_x1", is_final=False)
        name = config.report_filename(datetime(2024, 12, 31, 23, 59))
        assert name == "acme_x1-interim_data_set-12312024-23.59.xlsx"

    def test_output_key(self):
        config = ReportConfiguration("acme_x1")
        assert config.output_key("f.xlsx") == "report/output/acme_x1/f.xlsx"

    def test_thumbnail_url(self):
        config = ReportConfiguration("acme_x1", images_base_url="https://img.example/")
        assert config.thumbnail_url("p1") == "https://img.example/images/acme_x1/p1-1_tn.jpg"

    def test_no_thumbnail_without_base_url(self):
        assert ReportConfiguration("acme_x1").thumbnail_url("p1") is None


# ---------------------------------------------------------------------------
# Price detection
# ---------------------------------------------------------------------------

class TestDetectHasPricing:
    def test_half_priced_meets_threshold(self):
        assert detect_has_pricing(_products(10, 0)) is True

    def test_below_threshold(self):
        assert detect_has_pricing(_products(10, 0, None)) is False

    def test_empty_list(self):
        assert detect_has_pricing([]) is False

    def test_string_prices(self):
        assert detect_has_pricing(_products("12.50", "3", "abc")) is True

    def test_invalid_and_negative_not_valid(self):
        assert detect_has_pricing(_products("abc", -4, None, 0)) is False

    def test_custom_threshold(self):
        assert detect_has_pricing(_products(1, 0, 0, 0), threshold=0.25) is True
        assert detect_has_pricing(_products(1, 0, 0, 0), threshold=0.3) is False

    def test_thousands_separator_is_valid(self):
        assert detect_has_pricing(_products("1,200", "1,500")) is True

    def test_non_scalar_prices_are_invalid(self):
        products = _products([10], True)
        assert [p.price_value for p in products] == [0.0, 0.0]
        assert detect_has_pricing(products) is False


class TestResolvePricingMode:
    def test_explicit_flag_skips_detection(self):
        config = ReportConfiguration("acme_x1", has_prices=False)
        with patch.object(ReportConfiguration, "detect_has_pricing") as detect:
            assert config.resolve_pricing_mode(_products(10, 10)) is False
        detect.assert_not_called()

    def test_detected_once_and_cached(self):
        config = ReportConfiguration("acme_x1")
        with patch.object(ReportConfiguration, "detect_has_pricing",
                          return_value=True) as detect:
            assert config.resolve_pricing_mode(_products(10)) is True
            assert config.resolve_pricing_mode(_products(0)) is True
        detect.assert_called_once()
        assert config.pricing_included is True

    def test_pricing_included_before_resolution(self):
        assert ReportConfiguration("acme_x1").pricing_included is False
