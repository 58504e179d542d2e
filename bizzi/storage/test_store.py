import pytest
from sqlalchemy.ext.asyncio import create_async_engine

from bizzi.storage.database import create_all_tables
from bizzi.storage.store import SqlStore, StoreError


@pytest.fixture
async def sql_store(tmp_path):
    engine = create_async_engine(f"sqlite+aiosqlite:///{tmp_path / 'bizzi.db'}")
    await create_all_tables(engine)
    yield SqlStore(engine)
    await engine.dispose()


async def _seed_aging(store: SqlStore) -> None:
    for client, days, biz in (("Acme", 10, "b1"), ("Birch", 50, "b1"), ("Cedar", 90, "b1"), ("Dune", 70, "b2")):
        await store.insert(
            "ar_aging",
            {"business_id": biz, "client": client, "invoice_id": f"INV-{client}", "amount": days * 10.0, "days": days},
        )


async def test_insert_returns_stored_row_with_defaults(sql_store) -> None:
    row = await sql_store.insert(
        "calendar_events",
        {"business_id": "b1", "title": "Call", "start_ts": "2026-03-05T09:00:00+00:00"},
    )

    assert row["id"]
    assert row["title"] == "Call"
    assert row["status"] == "scheduled"
    assert row["end_ts"] is None


async def test_select_filters_orders_and_limits(sql_store) -> None:
    await _seed_aging(sql_store)

    rows = await sql_store.select(
        "ar_aging",
        columns=["client", "days"],
        eq={"business_id": "b1"},
        gte={"days": 45},
        order_by="days",
        descending=True,
        limit=5,
    )

    assert rows == [{"client": "Cedar", "days": 90}, {"client": "Birch", "days": 50}]


async def test_select_lte_and_ascending(sql_store) -> None:
    await _seed_aging(sql_store)

    rows = await sql_store.select("ar_aging", columns=["client"], lte={"days": 70}, order_by="days")

    assert [r["client"] for r in rows] == ["Acme", "Birch", "Dune"]


async def test_ilike_and_ilike_any(sql_store) -> None:
    for subject, snippet in (("Roof estimate", "numbers"), ("Invoice", "about the ROOF"), ("Lunch", "tacos")):
        await sql_store.insert(
            "email_threads_cache",
            {
                "user_id": "u1",
                "account_id": "a1",
                "thread_id": subject,
                "subject": subject,
                "snippet": snippet,
                "last_message_ts": "2026-01-01",
            },
        )

    either = await sql_store.select(
        "email_threads_cache",
        columns=["subject"],
        ilike_any={"subject": "%roof%", "snippet": "%roof%"},
        order_by="subject",
    )
    subject_only = await sql_store.select("email_threads_cache", columns=["subject"], ilike={"subject": "%ROOF%"})

    assert [r["subject"] for r in either] == ["Invoice", "Roof estimate"]
    assert [r["subject"] for r in subject_only] == ["Roof estimate"]


async def test_eq_none_matches_null(sql_store) -> None:
    await sql_store.insert("gpt_messages", {"user_id": "u1", "business_id": None, "role": "user", "content": "a"})
    await sql_store.insert("gpt_messages", {"user_id": "u1", "business_id": "b1", "role": "user", "content": "b"})

    rows = await sql_store.select("gpt_messages", columns=["content"], eq={"business_id": None})

    assert rows == [{"content": "a"}]


async def test_json_columns_round_trip(sql_store) -> None:
    await sql_store.insert(
        "email_activity_log",
        {"user_id": "u1", "action": "draft_generated", "payload": {"body": "hi", "user_prompt": "reply"}},
    )

    rows = await sql_store.select("email_activity_log", columns=["payload"], eq={"action": "draft_generated"})

    assert rows[0]["payload"] == {"body": "hi", "user_prompt": "reply"}


async def test_unknown_table_or_column_raises(sql_store) -> None:
    with pytest.raises(StoreError, match="unknown table"):
        await sql_store.select("nope")
    with pytest.raises(StoreError, match="unknown column"):
        await sql_store.select("ar_aging", eq={"bogus": 1})
    with pytest.raises(StoreError, match="unknown column"):
        await sql_store.insert("ar_aging", {"business_id": "b1", "bogus": 1})
