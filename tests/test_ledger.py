# tests/test_ledger.py

from decimal import Decimal

from procredit.core.exceptions import ShopifyAPIError, ShopifyAccessDenied
from procredit.schemas.accrual import DepositOutcome
from procredit.services import ledger

CUSTOMER_ID = "gid://shopify/Customer/77"
ACCOUNT_ID = "gid://shopify/StoreCreditAccount/3"


def accounts_response(*currencies):
    return {"customer": {"id": CUSTOMER_ID, "storeCreditAccounts": {"nodes": [
        {"id": f"gid://shopify/StoreCreditAccount/{i + 3}", "balance": {"amount": "0.0", "currencyCode": currency}}
        for i, currency in enumerate(currencies)
    ]}}}


def credit_response(user_errors=None):
    return {"storeCreditAccountCredit": {
        "storeCreditAccountTransaction": None if user_errors else {
            "amount": {"amount": "10.0", "currencyCode": "EUR"},
            "account": {"id": ACCOUNT_ID, "balance": {"amount": "10.0", "currencyCode": "EUR"}},
        },
        "userErrors": user_errors or [],
    }}


def test_customer_gid_conversion():
    assert ledger.to_customer_gid("77") == CUSTOMER_ID
    assert ledger.to_customer_gid(CUSTOMER_ID) == CUSTOMER_ID


async def test_deposit_success(mock_shopify_client):
    mock_shopify_client.graphql.side_effect = [accounts_response("EUR"), credit_response()]

    outcome = await ledger.deposit(mock_shopify_client, "77", Decimal("10"), "EUR")

    assert outcome is DepositOutcome.DEPOSITED
    lookup_vars = mock_shopify_client.graphql.call_args_list[0].args[1]
    assert lookup_vars == {"id": CUSTOMER_ID}
    query, variables = mock_shopify_client.graphql.call_args_list[1].args
    assert "storeCreditAccountCredit" in query
    assert variables == {
        "id": ACCOUNT_ID,
        "creditInput": {"creditAmount": {"amount": "10", "currencyCode": "EUR"}},
    }


async def test_deposit_picks_account_in_order_currency(mock_shopify_client):
    mock_shopify_client.graphql.side_effect = [accounts_response("USD", "EUR"), credit_response()]

    assert await ledger.deposit(mock_shopify_client, CUSTOMER_ID, Decimal("10"), "EUR") is DepositOutcome.DEPOSITED
    assert mock_shopify_client.graphql.call_args_list[1].args[1]["id"] == "gid://shopify/StoreCreditAccount/4"


async def test_no_account_in_currency(mock_shopify_client):
    mock_shopify_client.graphql.side_effect = [accounts_response("USD")]

    assert await ledger.deposit(mock_shopify_client, CUSTOMER_ID, Decimal("10"), "EUR") is DepositOutcome.NO_ACCOUNT
    assert mock_shopify_client.graphql.call_count == 1


async def test_unknown_customer(mock_shopify_client):
    mock_shopify_client.graphql.return_value = {"customer": None}

    assert await ledger.deposit(mock_shopify_client, CUSTOMER_ID, Decimal("10"), "EUR") is DepositOutcome.NO_ACCOUNT


async def test_missing_scope_is_permission_denied(mock_shopify_client):
    mock_shopify_client.graphql.side_effect = ShopifyAccessDenied("Access denied for storeCreditAccounts field.")

    assert await ledger.deposit(mock_shopify_client, CUSTOMER_ID, Decimal("10"), "EUR") is DepositOutcome.PERMISSION_DENIED


async def test_permission_user_error(mock_shopify_client):
    mock_shopify_client.graphql.side_effect = [
        accounts_response("EUR"),
        credit_response([{"field": None, "message": "Access denied", "code": "ACCESS_DENIED"}]),
    ]

    assert await ledger.deposit(mock_shopify_client, CUSTOMER_ID, Decimal("10"), "EUR") is DepositOutcome.PERMISSION_DENIED


async def test_other_user_error_is_transport_error(mock_shopify_client):
    mock_shopify_client.graphql.side_effect = [
        accounts_response("EUR"),
        credit_response([{"field": ["creditInput"], "message": "Amount is too large", "code": "INVALID"}]),
    ]

    assert await ledger.deposit(mock_shopify_client, CUSTOMER_ID, Decimal("10"), "EUR") is DepositOutcome.TRANSPORT_ERROR


async def test_network_failure_is_reported_not_raised(mock_shopify_client):
    mock_shopify_client.graphql.side_effect = [accounts_response("EUR"), ShopifyAPIError("Network error: timeout")]

    assert await ledger.deposit(mock_shopify_client, CUSTOMER_ID, Decimal("10"), "EUR") is DepositOutcome.TRANSPORT_ERROR
