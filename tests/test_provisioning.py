"""
Unit Tests for temporary variant provisioning
"""

from decimal import Decimal

import pytest

from app.config import METAFIELD_NAMESPACE, STARTER_VARIANT_KEY
from app.errors import Malformed, NotFound, UpstreamFailure
from app.provisioning import VariantProvisioner

from conftest import LOCATION_ID

PRODUCT = "gid://shopify/Product/10"
STARTER = "gid://shopify/ProductVariant/1"


@pytest.fixture
def provisioner(settings, shopify, journal):
    shopify.first_variants[PRODUCT] = {
        "id": STARTER,
        "price": "20.00",
        "inventoryItem": {"id": "gid://shopify/InventoryItem/100"},
    }
    shopify.product_options[PRODUCT] = [{"id": "gid://shopify/ProductOption/1", "name": "Size"}]
    return VariantProvisioner(settings, shopify, journal=journal)


class TestProvision:
    @pytest.mark.asyncio
    async def test_single_dimension_variant(self, provisioner, shopify, journal):
        variant = await provisioner.provision("10", length_mm=Decimal("1250"))

        assert variant.label == "Length | 1250 mm"
        assert variant.price == Decimal("25.00")
        assert variant.starter_variant_id == STARTER

        created = shopify.created[0]["variants"][0]
        assert created["optionValues"] == [{"optionName": "Size", "name": "Length | 1250 mm"}]
        assert created["inventoryPolicy"] == "CONTINUE"
        assert created["inventoryQuantities"] == [{"availableQuantity": 0, "locationId": LOCATION_ID}]
        assert created["metafields"][0]["namespace"] == METAFIELD_NAMESPACE
        assert created["metafields"][0]["key"] == STARTER_VARIANT_KEY
        assert created["metafields"][0]["value"] == STARTER
        assert journal.event_types == ["TemporaryVariantCreated"]

    @pytest.mark.asyncio
    async def test_area_variant_uses_combined_label(self, provisioner):
        variant = await provisioner.provision(
            PRODUCT, length_mm=Decimal("1500"), width_mm=Decimal("500"),
            length_label="Länge", width_label="Breite",
        )
        assert variant.label == "Länge | 1500 mm X Breite | 500 mm"
        assert variant.price == Decimal("15.00")

    @pytest.mark.asyncio
    async def test_explicit_starter_variant_price(self, provisioner, shopify):
        shopify.variant_prices["gid://shopify/ProductVariant/7"] = "8.00"
        variant = await provisioner.provision("10", width_mm=Decimal("500"), starter_variant_id="7")
        assert variant.starter_variant_id == "gid://shopify/ProductVariant/7"
        assert variant.price == Decimal("4.00")

    @pytest.mark.asyncio
    async def test_default_title_option_is_renamed(self, provisioner, shopify):
        shopify.product_options[PRODUCT] = [{"id": "gid://shopify/ProductOption/9", "name": "Title"}]
        await provisioner.provision("10", length_mm=Decimal("100"))
        assert shopify.renamed == [(PRODUCT, "gid://shopify/ProductOption/9", "Size")]

    @pytest.mark.asyncio
    async def test_missing_dimensions_is_malformed(self, provisioner, shopify):
        with pytest.raises(Malformed):
            await provisioner.provision("10")
        with pytest.raises(Malformed):
            await provisioner.provision("10", length_mm=Decimal("-5"))
        assert shopify.calls == []

    @pytest.mark.asyncio
    async def test_unknown_product_is_not_found(self, provisioner):
        with pytest.raises(NotFound):
            await provisioner.provision("99", length_mm=Decimal("100"))

    @pytest.mark.asyncio
    async def test_create_user_errors_are_upstream(self, provisioner, shopify):
        shopify.user_errors["CreateVariant"] = [{"field": ["variants"], "message": "limit reached"}]
        with pytest.raises(UpstreamFailure):
            await provisioner.provision("10", length_mm=Decimal("100"))
