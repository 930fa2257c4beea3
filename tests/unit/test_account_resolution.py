"""
Tests for AccountResolver.

Precedence, first non-null wins:
    item -> category -> customer (receivable only) -> document -> tenant
"""

from uuid import uuid4

import pytest

from ledger_kernel.domain.documents import CategoryRef, CustomerRef, ProductRef, TaxCodeRef
from ledger_kernel.domain.resolution import AccountResolver, LineContext
from ledger_kernel.domain.roles import OPTIONAL_ROLES, AccountRole
from ledger_kernel.exceptions import MissingAccountConfigurationError


@pytest.fixture
def ids():
    return {name: uuid4() for name in ("item", "category", "customer", "document", "tenant")}


class TestPrecedence:
    """Each tier shadows the ones after it."""

    def test_item_beats_category(self, ids):
        product = ProductRef(
            name="Widget",
            cogs_account_id=ids["item"],
            category=CategoryRef(name="Widgets", cogs_account_id=ids["category"]),
        )
        resolver = AccountResolver({AccountRole.COGS: ids["tenant"]})
        context = LineContext(description="line 1", product=product, document_account_id=ids["document"])
        assert resolver.resolve(AccountRole.COGS, context) == ids["item"]

    def test_category_when_product_has_none(self, ids):
        product = ProductRef(
            name="Widget",
            category=CategoryRef(name="Widgets", cogs_account_id=ids["category"]),
        )
        context = LineContext(description="line 1", product=product)
        assert AccountResolver().resolve(AccountRole.COGS, context) == ids["category"]

    def test_explicit_item_account_beats_product(self, ids):
        product = ProductRef(name="Widget", inventory_account_id=ids["category"])
        context = LineContext(description="line 1", product=product, item_account_id=ids["item"])
        assert AccountResolver().resolve(AccountRole.ADJUSTMENT, context) == ids["item"]

    def test_customer_tier_for_receivable(self, ids):
        context = LineContext(
            description="invoice INV-1",
            customer=CustomerRef(name="Jane", receivable_account_id=ids["customer"]),
            document_account_id=ids["document"],
        )
        resolver = AccountResolver({AccountRole.RECEIVABLE: ids["tenant"]})
        assert resolver.resolve(AccountRole.RECEIVABLE, context) == ids["customer"]

    def test_customer_tier_ignored_for_other_roles(self, ids):
        context = LineContext(
            description="invoice INV-1",
            customer=CustomerRef(name="Jane", receivable_account_id=ids["customer"]),
        )
        resolver = AccountResolver({AccountRole.INCOME: ids["tenant"]})
        assert resolver.resolve(AccountRole.INCOME, context) == ids["tenant"]

    def test_document_beats_tenant(self, ids):
        resolver = AccountResolver({AccountRole.CASH: ids["tenant"]})
        context = LineContext(description="receipt R-1", document_account_id=ids["document"])
        assert resolver.resolve(AccountRole.CASH, context) == ids["document"]

    def test_tenant_default_is_last(self, ids):
        resolver = AccountResolver({AccountRole.CASH: ids["tenant"]})
        assert resolver.resolve(AccountRole.CASH, LineContext(description="r")) == ids["tenant"]

    def test_tax_role_reads_tax_code_not_product(self, ids):
        product = ProductRef(name="Widget", income_account_id=ids["category"])
        context = LineContext(
            description="line 1",
            product=product,
            tax_code=TaxCodeRef(code="VAT", account_id=ids["item"]),
        )
        assert AccountResolver().resolve(AccountRole.TAX_PAYABLE, context) == ids["item"]

    def test_candidate_tiers_in_order(self, ids):
        context = LineContext(
            description="invoice INV-1",
            customer=CustomerRef(name="Jane"),
        )
        tiers = [tier for tier, _ in AccountResolver().candidates(AccountRole.RECEIVABLE, context)]
        assert tiers == ["item", "customer", "document", "tenant"]

    def test_product_roles_include_category_tier(self, ids):
        context = LineContext(description="line 1", product=ProductRef(name="Widget"))
        tiers = [tier for tier, _ in AccountResolver().candidates(AccountRole.COGS, context)]
        assert tiers == ["item", "item", "category", "document", "tenant"]


class TestMandatoryAndOptional:

    @pytest.mark.parametrize(
        "role",
        [AccountRole.COGS, AccountRole.INVENTORY, AccountRole.INCOME, AccountRole.RECEIVABLE],
    )
    def test_unresolved_mandatory_role_raises(self, role):
        context = LineContext(description="line 3 (Gadget)", product=ProductRef(name="Gadget"))
        with pytest.raises(MissingAccountConfigurationError) as exc_info:
            AccountResolver().resolve(role, context)
        assert exc_info.value.role == role.value
        assert exc_info.value.line == "line 3 (Gadget)"
        assert exc_info.value.code == "MISSING_ACCOUNT_CONFIGURATION"

    @pytest.mark.parametrize("role", sorted(OPTIONAL_ROLES, key=lambda r: r.value))
    def test_unresolved_optional_role_returns_none(self, role):
        assert AccountResolver().resolve(role, LineContext(description="invoice INV-1")) is None

    def test_optional_roles(self):
        assert OPTIONAL_ROLES == {
            AccountRole.DISCOUNT_ALLOWED,
            AccountRole.TAX_PAYABLE,
            AccountRole.WHT_RECEIVABLE,
        }
        assert AccountRole.CASH.is_mandatory
        assert not AccountRole.TAX_PAYABLE.is_mandatory


class TestResolutionLogging:

    def test_resolved_tier_logged(self, captured_logs, ids):
        resolver = AccountResolver({AccountRole.CASH: ids["tenant"]})
        resolver.resolve(AccountRole.CASH, LineContext(description="receipt R-1"))

        records = [r for r in captured_logs() if r["message"] == "account_resolved"]
        assert records[-1]["tier"] == "tenant"
        assert records[-1]["role"] == "cash"

    def test_unresolved_mandatory_logged(self, captured_logs):
        with pytest.raises(MissingAccountConfigurationError):
            AccountResolver().resolve(AccountRole.INCOME, LineContext(description="line 1"))

        records = [r for r in captured_logs() if r["message"] == "mandatory_role_unresolved"]
        assert records and records[0]["level"] == "WARNING"
