# tests/test_pro_resolver.py

import pytest

from procredit.core.config import settings
from procredit.core.exceptions import ProResolutionError, ShopifyAPIError
from procredit.services import pro_resolver
from conftest import make_metaobject


def directory_graphql(search_nodes, all_nodes, fail_on=None):
    """
    Поддельный graphql: searchPros отдает search_nodes, listPros режет all_nodes на страницы
    по переданному first, курсор - индекс следующей записи.
    """
    calls = {"search": 0, "list": 0}

    async def graphql(query, variables=None):
        if "searchPros" in query:
            calls["search"] += 1
            if fail_on == "search":
                raise ShopifyAPIError("search backend unavailable")
            return {"metaobjects": {"edges": [{"node": node} for node in search_nodes]}}
        if "listPros" in query:
            calls["list"] += 1
            if fail_on == "list":
                raise ShopifyAPIError("listing failed")
            start = int(variables.get("after") or 0)
            end = start + variables["first"]
            page = all_nodes[start:end]
            has_next = end < len(all_nodes)
            return {"metaobjects": {
                "edges": [{"node": node} for node in page],
                "pageInfo": {"hasNextPage": has_next, "endCursor": str(end) if has_next else None},
            }}
        raise AssertionError(f"Unexpected query: {query}")

    return graphql, calls


def many_pros(count: int) -> list:
    return [make_metaobject(f"gid://shopify/Metaobject/{i}", f"CODE{i}") for i in range(count)]


async def test_indexed_search_exact_match(mock_shopify_client):
    node = make_metaobject("gid://shopify/Metaobject/7", "DrMartin10", customer_id="gid://shopify/Customer/5")
    mock_shopify_client.graphql.side_effect, calls = directory_graphql([node], [])

    pro = await pro_resolver.resolve(mock_shopify_client, "drmartin10")

    assert pro.id == "gid://shopify/Metaobject/7"
    assert pro.customer_id == "gid://shopify/Customer/5"
    assert calls == {"search": 1, "list": 0}


async def test_code_differing_in_case_and_whitespace(mock_shopify_client):
    node = make_metaobject("gid://shopify/Metaobject/7", "DRMARTIN10")
    mock_shopify_client.graphql.side_effect, _ = directory_graphql([node], [])

    pro = await pro_resolver.resolve(mock_shopify_client, "  DrMartin10 \n")

    assert pro.id == "gid://shopify/Metaobject/7"
    sent_query = mock_shopify_client.graphql.call_args_list[0].args[1]["query"]
    assert sent_query == "drmartin10"


async def test_index_false_positives_fall_back_to_scan(mock_shopify_client, monkeypatch):
    monkeypatch.setattr(settings, "RESOLVER_PAGE_SIZE", 10)
    nodes = many_pros(25)
    nodes[17] = make_metaobject("gid://shopify/Metaobject/target", "MARTIN")
    # Индекс вернул только похожие коды
    search_hits = [make_metaobject("gid://shopify/Metaobject/x", "MARTIN2024")]
    mock_shopify_client.graphql.side_effect, calls = directory_graphql(search_hits, nodes)

    pro = await pro_resolver.resolve(mock_shopify_client, "martin")

    assert pro.id == "gid://shopify/Metaobject/target"
    assert calls["list"] == 2


async def test_code_on_a_later_page_is_found(mock_shopify_client, monkeypatch):
    monkeypatch.setattr(settings, "RESOLVER_PAGE_SIZE", 5)
    nodes = many_pros(30)
    mock_shopify_client.graphql.side_effect, calls = directory_graphql([], nodes)

    pro = await pro_resolver.resolve(mock_shopify_client, "code26")

    assert pro.id == "gid://shopify/Metaobject/26"
    assert calls["list"] == 6


async def test_scan_stops_at_limit(mock_shopify_client, monkeypatch):
    monkeypatch.setattr(settings, "RESOLVER_PAGE_SIZE", 5)
    monkeypatch.setattr(settings, "RESOLVER_SCAN_LIMIT", 12)
    nodes = many_pros(30)
    mock_shopify_client.graphql.side_effect, calls = directory_graphql([], nodes)

    assert await pro_resolver.resolve(mock_shopify_client, "code20") is None
    # 5 + 5 + 2 записи
    assert calls["list"] == 3
    last_first = mock_shopify_client.graphql.call_args_list[-1].args[1]["first"]
    assert last_first == 2


async def test_unknown_code_returns_none(mock_shopify_client):
    mock_shopify_client.graphql.side_effect, calls = directory_graphql([], many_pros(3))

    assert await pro_resolver.resolve(mock_shopify_client, "nobody") is None
    assert calls == {"search": 1, "list": 1}


async def test_blank_code_is_not_looked_up(mock_shopify_client):
    assert await pro_resolver.resolve(mock_shopify_client, "   ") is None
    mock_shopify_client.graphql.assert_not_called()


@pytest.mark.parametrize("fail_on", ["search", "list"])
async def test_backend_errors_are_not_reported_as_not_found(mock_shopify_client, fail_on):
    mock_shopify_client.graphql.side_effect, _ = directory_graphql([], many_pros(3), fail_on=fail_on)

    with pytest.raises(ProResolutionError):
        await pro_resolver.resolve(mock_shopify_client, "code1" if fail_on == "search" else "absent")
