# tests/test_pro_directory.py

import pytest
from decimal import Decimal

from procredit.core.exceptions import CacheCommitError, ShopifyAPIError
from procredit.services import pro_directory
from conftest import make_metaobject


async def test_get_pro_parses_metaobject(mock_shopify_client):
    mock_shopify_client.graphql.return_value = {"metaobject": make_metaobject(
        "gid://shopify/Metaobject/9", "SOPHIE15",
        customer_id="gid://shopify/Customer/77", status="true",
        cache_revenue="1250.50", cache_orders_count="7", cache_credit_earned="20",
    )}

    pro = await pro_directory.get_pro(mock_shopify_client, "gid://shopify/Metaobject/9")

    assert pro.code == "SOPHIE15"
    assert pro.status is True
    assert pro.cache_revenue == Decimal("1250.50")
    assert pro.cache_orders_count == 7
    assert pro.cache_credit_earned == Decimal("20")


async def test_blank_cache_fields_read_as_zero(mock_shopify_client):
    mock_shopify_client.graphql.return_value = {"metaobject": make_metaobject(
        "gid://shopify/Metaobject/9", "NEWPRO", status="", cache_revenue="", cache_orders_count=None,
    )}

    pro = await pro_directory.get_pro(mock_shopify_client, "gid://shopify/Metaobject/9")

    assert pro.status is True
    assert pro.cache_revenue == Decimal("0")
    assert pro.cache_orders_count == 0
    assert pro.cache_credit_earned == Decimal("0")


async def test_get_pro_missing_returns_none(mock_shopify_client):
    mock_shopify_client.graphql.return_value = {"metaobject": None}

    assert await pro_directory.get_pro(mock_shopify_client, "gid://shopify/Metaobject/404") is None


async def test_commit_cache_sends_only_counter_fields(mock_shopify_client):
    mock_shopify_client.graphql.return_value = {"metaobjectUpdate": {"metaobject": {"id": "x"}, "userErrors": []}}

    await pro_directory.commit_cache(
        mock_shopify_client, "gid://shopify/Metaobject/9", Decimal("550.00"), 4, Decimal("10"),
    )

    query, variables = mock_shopify_client.graphql.call_args.args
    assert "metaobjectUpdate" in query
    assert variables["id"] == "gid://shopify/Metaobject/9"
    assert variables["metaobject"]["fields"] == [
        {"key": "cache_revenue", "value": "550.00"},
        {"key": "cache_orders_count", "value": "4"},
        {"key": "cache_credit_earned", "value": "10"},
    ]


async def test_commit_cache_user_errors(mock_shopify_client):
    mock_shopify_client.graphql.return_value = {"metaobjectUpdate": {
        "metaobject": None,
        "userErrors": [{"field": ["fields"], "message": "Value is invalid"}],
    }}

    with pytest.raises(CacheCommitError):
        await pro_directory.commit_cache(mock_shopify_client, "gid://shopify/Metaobject/9", Decimal("1"), 1, Decimal("0"))


async def test_commit_cache_transport_error(mock_shopify_client):
    mock_shopify_client.graphql.side_effect = ShopifyAPIError("Service Unavailable", status_code=503)

    with pytest.raises(CacheCommitError):
        await pro_directory.commit_cache(mock_shopify_client, "gid://shopify/Metaobject/9", Decimal("1"), 1, Decimal("0"))


async def test_committed_values_are_read_back(mock_shopify_client):
    """Запись счетчиков и повторное чтение через один и тот же «справочник»."""
    stored = {"gid://shopify/Metaobject/9": make_metaobject(
        "gid://shopify/Metaobject/9", "SOPHIE15", cache_revenue="450", cache_orders_count="3", cache_credit_earned="0",
    )}

    async def graphql(query, variables=None):
        if "metaobjectUpdate" in query:
            node = stored[variables["id"]]
            updates = {f["key"]: f["value"] for f in variables["metaobject"]["fields"]}
            node["fields"] = [
                {"key": f["key"], "value": updates.pop(f["key"], f["value"])} for f in node["fields"]
            ] + [{"key": k, "value": v} for k, v in updates.items()]
            return {"metaobjectUpdate": {"metaobject": node, "userErrors": []}}
        return {"metaobject": stored.get(variables["id"])}

    mock_shopify_client.graphql.side_effect = graphql

    await pro_directory.commit_cache(mock_shopify_client, "gid://shopify/Metaobject/9", Decimal("550.00"), 4, Decimal("10"))
    pro = await pro_directory.get_pro(mock_shopify_client, "gid://shopify/Metaobject/9")

    assert pro.code == "SOPHIE15"
    assert pro.cache_revenue == Decimal("550.00")
    assert pro.cache_orders_count == 4
    assert pro.cache_credit_earned == Decimal("10")
