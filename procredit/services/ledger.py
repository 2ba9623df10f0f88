# procredit/services/ledger.py

import logging
from decimal import Decimal
from typing import Optional

from procredit.clients.shopify import ShopifyAdminClient
from procredit.core.exceptions import ShopifyAPIError, ShopifyAccessDenied
from procredit.schemas.accrual import DepositOutcome

logger = logging.getLogger(__name__)

CUSTOMER_GID_PREFIX = "gid://shopify/Customer/"
PERMISSION_MARKERS = ("access denied", "permission", "scope", "not authorized", "unauthorized")
REQUIRED_SCOPES = "read_store_credit_accounts, write_store_credit_account_transactions"

STORE_CREDIT_ACCOUNTS_QUERY = """
query customerStoreCreditAccounts($id: ID!) {
  customer(id: $id) {
    id
    storeCreditAccounts(first: 10) {
      nodes { id balance { amount currencyCode } }
    }
  }
}
"""

STORE_CREDIT_CREDIT_MUTATION = """
mutation storeCreditAccountCredit($id: ID!, $creditInput: StoreCreditAccountCreditInput!) {
  storeCreditAccountCredit(id: $id, creditInput: $creditInput) {
    storeCreditAccountTransaction {
      amount { amount currencyCode }
      account { id balance { amount currencyCode } }
    }
    userErrors { field message code }
  }
}
"""


def to_customer_gid(customer_id: str) -> str:
    customer_id = str(customer_id).strip()
    if customer_id.startswith("gid://"):
        return customer_id
    return f"{CUSTOMER_GID_PREFIX}{customer_id}"


def _is_permission_error(user_errors: list) -> bool:
    for err in user_errors:
        text = f"{err.get('code') or ''} {err.get('message') or ''}".lower()
        if "access_denied" in text or any(marker in text for marker in PERMISSION_MARKERS):
            return True
    return False


async def find_store_credit_account(client: ShopifyAdminClient, customer_id: str, currency: str) -> Optional[str]:
    """Возвращает ID счета store credit клиента в нужной валюте или None."""
    data = await client.graphql(STORE_CREDIT_ACCOUNTS_QUERY, {"id": to_customer_gid(customer_id)})
    customer = data.get("customer")
    if not customer:
        return None
    accounts = (customer.get("storeCreditAccounts") or {}).get("nodes") or []
    for account in accounts:
        account_currency = (account.get("balance") or {}).get("currencyCode")
        if account_currency is None or account_currency == currency:
            return account["id"]
    return None


async def deposit(client: ShopifyAdminClient, customer_id: str, amount: Decimal, currency: str) -> DepositOutcome:
    """
    Зачисляет `amount` на счет store credit клиента.
    Ничего не поднимает: все исходы возвращаются как DepositOutcome.
    Вызов не идемпотентен на стороне Shopify (ключ дедупликации не передается).
    """
    try:
        account_id = await find_store_credit_account(client, customer_id, currency)
    except ShopifyAccessDenied as e:
        logger.warning(
            f"Permission denied while reading store credit accounts of {customer_id}: {e}. "
            f"Grant the app the scopes: {REQUIRED_SCOPES}."
        )
        return DepositOutcome.PERMISSION_DENIED
    except ShopifyAPIError as e:
        logger.error(f"Failed to look up store credit account of {customer_id}: {e}")
        return DepositOutcome.TRANSPORT_ERROR

    if not account_id:
        logger.info(f"Customer {customer_id} has no store credit account in {currency}. Deposit skipped.")
        return DepositOutcome.NO_ACCOUNT

    variables = {
        "id": account_id,
        "creditInput": {"creditAmount": {"amount": str(amount), "currencyCode": currency}},
    }
    try:
        data = await client.graphql(STORE_CREDIT_CREDIT_MUTATION, variables)
    except ShopifyAccessDenied as e:
        logger.warning(
            f"Permission denied while crediting {amount} {currency} to {account_id}: {e}. "
            f"Grant the app the scopes: {REQUIRED_SCOPES}."
        )
        return DepositOutcome.PERMISSION_DENIED
    except ShopifyAPIError as e:
        logger.error(f"Store credit deposit of {amount} {currency} to {account_id} failed: {e}")
        return DepositOutcome.TRANSPORT_ERROR

    payload = data.get("storeCreditAccountCredit") or {}
    user_errors = payload.get("userErrors") or []
    if user_errors:
        if _is_permission_error(user_errors):
            logger.warning(f"Store credit deposit refused for {account_id}: {user_errors}. Required scopes: {REQUIRED_SCOPES}.")
            return DepositOutcome.PERMISSION_DENIED
        logger.error(f"Store credit deposit to {account_id} returned userErrors: {user_errors}")
        return DepositOutcome.TRANSPORT_ERROR

    balance = (((payload.get("storeCreditAccountTransaction") or {}).get("account") or {}).get("balance") or {})
    logger.info(
        f"Deposited {amount} {currency} to store credit account {account_id} "
        f"(new balance: {balance.get('amount')} {balance.get('currencyCode')})"
    )
    return DepositOutcome.DEPOSITED
