"""
test_channel_poller.py — Tests for app/services/channel_poller.py

Uses an in-memory stand-in for GmailClient so every outcome of one poll
cycle can be driven without the network.

Covers: created / skipped_unauthorized / skipped_no_items / failed
        outcomes, label application rules, best-effort labeling,
        batch continuation after errors, paging past unlabeled messages,
        truncated email bodies, preview.

Called by: pytest
Depends on: app/services/channel_poller.py, tests/conftest.py
"""

from unittest.mock import AsyncMock, patch

import pytest

from app.exceptions import ChannelTransportError, ExtractionTransportError
from app.models import Order, Party
from app.services import channel_poller
from app.services.channel_poller import (
    CREATED,
    FAILED,
    SKIPPED_NO_ITEMS,
    SKIPPED_UNAUTHORIZED,
    poll_channel,
    preview_channel,
)
from conftest import gmail_message, intent_json


class FakeGmail:
    """Mailbox stand-in: holds raw messages and records applied labels."""

    def __init__(self, messages, *, fail_label=False):
        self.messages = {m["id"]: m for m in messages}
        self.order = [m["id"] for m in messages]
        self.labeled: dict[str, str] = {}
        self.fail_label = fail_label
        self.list_calls = []

    async def ensure_label(self, name):
        return "LBL-1"

    async def list_unconsumed(self, label_name, max_results=5):
        return [{"id": i} for i in self.order if i not in self.labeled][:max_results]

    async def list_unconsumed_page(self, label_name, max_results=5, page_token=None):
        """Pages over the unlabeled messages as they stood on the first call."""
        self.list_calls.append((label_name, max_results))
        if page_token is None:
            self._pending = [i for i in self.order if i not in self.labeled]
        start = int(page_token or 0)
        end = start + max_results
        next_token = str(end) if end < len(self._pending) else None
        return [{"id": i} for i in self._pending[start:end]], next_token

    async def get_message(self, message_id):
        return self.messages[message_id]

    async def apply_label(self, message_id, label_id):
        if self.fail_label:
            raise ChannelTransportError("modify failed", status_code=500)
        self.labeled[message_id] = label_id
        return {}


def _oracle(*raws):
    return patch(
        "app.services.intent_extractor.llm_json_text",
        new_callable=AsyncMock,
        side_effect=list(raws),
    )


@pytest.mark.asyncio
async def test_partner_email_creates_order_and_is_labeled(
    db_session, restaurant, supplier, partnership, catalog
):
    gmail = FakeGmail([gmail_message("m1", "Alice <alice@gourmetsteak.com>", "10 lettuce")])
    with _oracle(intent_json([("lettuce", 10)])):
        report = await poll_channel(db_session, supplier, gmail)

    outcome = report.outcomes[0]
    assert outcome.status == CREATED
    assert outcome.marked is True
    assert gmail.labeled == {"m1": "LBL-1"}

    order = db_session.get(Order, outcome.order_id)
    assert order.restaurant_id == restaurant.id
    assert order.source == "email"
    assert order.source_message_id == "m1"
    assert order.notes == "10 lettuce"


@pytest.mark.asyncio
async def test_sender_match_is_case_insensitive(db_session, restaurant, supplier, partnership, catalog):
    gmail = FakeGmail([gmail_message("m1", "ALICE@GourmetSteak.com", "1 lettuce")])
    with _oracle(intent_json([("lettuce", 1)])):
        report = await poll_channel(db_session, supplier, gmail)
    assert report.outcomes[0].status == CREATED


@pytest.mark.asyncio
async def test_unknown_sender_skipped_without_oracle_or_label(db_session, supplier, catalog):
    gmail = FakeGmail([gmail_message("m1", "spam@example.com", "buy now")])
    with _oracle() as mock_llm:
        report = await poll_channel(db_session, supplier, gmail)

    assert report.outcomes[0].status == SKIPPED_UNAUTHORIZED
    assert gmail.labeled == {}
    mock_llm.assert_not_awaited()
    assert db_session.query(Order).count() == 0


@pytest.mark.asyncio
async def test_known_party_without_partnership_skipped(db_session, restaurant, supplier, catalog):
    gmail = FakeGmail([gmail_message("m1", "alice@gourmetsteak.com", "1 lettuce")])
    with _oracle() as mock_llm:
        report = await poll_channel(db_session, supplier, gmail)

    assert report.outcomes[0].status == SKIPPED_UNAUTHORIZED
    mock_llm.assert_not_awaited()


@pytest.mark.asyncio
async def test_deleted_partnership_skipped(db_session, restaurant, supplier, partnership, catalog):
    partnership.status = "DELETED"
    db_session.commit()
    gmail = FakeGmail([gmail_message("m1", "alice@gourmetsteak.com", "1 lettuce")])
    with _oracle():
        report = await poll_channel(db_session, supplier, gmail)
    assert report.outcomes[0].status == SKIPPED_UNAUTHORIZED


@pytest.mark.asyncio
async def test_supplier_own_address_skipped(db_session, supplier, catalog):
    gmail = FakeGmail([gmail_message("m1", "john@freshproduce.com", "note to self")])
    with _oracle():
        report = await poll_channel(db_session, supplier, gmail)
    assert report.outcomes[0].status == SKIPPED_UNAUTHORIZED


@pytest.mark.asyncio
async def test_no_matching_items_labeled_without_order(db_session, restaurant, supplier, partnership, catalog):
    gmail = FakeGmail([gmail_message("m1", "alice@gourmetsteak.com", "3 dozen eggs")])
    with _oracle(intent_json([("eggs", 3)])):
        report = await poll_channel(db_session, supplier, gmail)

    outcome = report.outcomes[0]
    assert outcome.status == SKIPPED_NO_ITEMS
    assert outcome.order_id is None
    assert outcome.marked is True
    assert db_session.query(Order).count() == 0


@pytest.mark.asyncio
async def test_extractor_failure_fails_message_and_batch_continues(
    db_session, restaurant, supplier, partnership, catalog
):
    gmail = FakeGmail([
        gmail_message("m1", "alice@gourmetsteak.com", "10 lettuce"),
        gmail_message("m2", "alice@gourmetsteak.com", "5 tomatoes"),
    ])
    with patch(
        "app.services.intent_extractor.llm_json_text",
        new_callable=AsyncMock,
        side_effect=[ExtractionTransportError("down", status_code=503), intent_json([("tomatoes", 5)])],
    ):
        report = await poll_channel(db_session, supplier, gmail)

    assert [o.status for o in report.outcomes] == [FAILED, CREATED]
    assert "down" in report.outcomes[0].error
    assert "m1" not in gmail.labeled
    assert "m2" in gmail.labeled
    assert db_session.query(Order).count() == 1


@pytest.mark.asyncio
async def test_bad_oracle_output_fails_message(db_session, restaurant, supplier, partnership, catalog):
    gmail = FakeGmail([gmail_message("m1", "alice@gourmetsteak.com", "10 lettuce")])
    with _oracle("not json at all"):
        report = await poll_channel(db_session, supplier, gmail)
    assert report.outcomes[0].status == FAILED
    assert gmail.labeled == {}


@pytest.mark.asyncio
async def test_unexpected_error_is_contained(db_session, restaurant, supplier, partnership, catalog):
    gmail = FakeGmail([gmail_message("m1", "alice@gourmetsteak.com", "10 lettuce")])
    with patch.object(
        channel_poller.order_service, "create_order_from_text",
        new_callable=AsyncMock, side_effect=RuntimeError("boom"),
    ):
        report = await poll_channel(db_session, supplier, gmail)
    assert report.outcomes[0].status == FAILED
    assert report.outcomes[0].error == "RuntimeError"


@pytest.mark.asyncio
async def test_label_failure_keeps_order(db_session, restaurant, supplier, partnership, catalog):
    gmail = FakeGmail([gmail_message("m1", "alice@gourmetsteak.com", "10 lettuce")], fail_label=True)
    with _oracle(intent_json([("lettuce", 10)])):
        report = await poll_channel(db_session, supplier, gmail)

    outcome = report.outcomes[0]
    assert outcome.status == CREATED
    assert outcome.marked is False
    assert db_session.query(Order).count() == 1


@pytest.mark.asyncio
async def test_second_poll_ignores_labeled_messages(db_session, restaurant, supplier, partnership, catalog):
    gmail = FakeGmail([gmail_message("m1", "alice@gourmetsteak.com", "10 lettuce")])
    with _oracle(intent_json([("lettuce", 10)])):
        await poll_channel(db_session, supplier, gmail)
    with _oracle() as mock_llm:
        report = await poll_channel(db_session, supplier, gmail)

    assert report.outcomes == []
    mock_llm.assert_not_awaited()
    assert db_session.query(Order).count() == 1


@pytest.mark.asyncio
async def test_report_counts_and_last_poll(db_session, restaurant, supplier, partnership, catalog):
    gmail = FakeGmail([
        gmail_message("m1", "alice@gourmetsteak.com", "10 lettuce"),
        gmail_message("m2", "stranger@example.com", "hello"),
        gmail_message("m3", "alice@gourmetsteak.com", "eggs"),
    ])
    with _oracle(intent_json([("lettuce", 10)]), intent_json([("eggs", 1)])):
        report = await poll_channel(db_session, supplier, gmail, max_results=10)

    data = report.to_dict()
    assert data["supplier_id"] == supplier.id
    assert data["processed"] == 3
    assert (data["created"], data["skipped_unauthorized"], data["skipped_no_items"], data["failed"]) == (1, 1, 1, 0)
    assert gmail.list_calls == [("processed-by-agent", 10)]
    assert db_session.get(Party, supplier.id).last_inbox_poll is not None


@pytest.mark.asyncio
async def test_listing_failure_propagates(db_session, supplier):
    gmail = FakeGmail([])
    gmail.list_unconsumed_page = AsyncMock(side_effect=ChannelTransportError("list failed", status_code=500))
    with pytest.raises(ChannelTransportError):
        await poll_channel(db_session, supplier, gmail)


@pytest.mark.asyncio
async def test_failed_outcome_keeps_sender_and_subject(db_session, restaurant, supplier, partnership, catalog):
    gmail = FakeGmail([gmail_message("m1", "alice@gourmetsteak.com", "10 lettuce", subject="Friday order")])
    with _oracle(ExtractionTransportError("down", status_code=503)):
        report = await poll_channel(db_session, supplier, gmail)

    outcome = report.outcomes[0]
    assert outcome.status == FAILED
    assert outcome.sender == "alice@gourmetsteak.com"
    assert outcome.subject == "Friday order"


@pytest.mark.asyncio
async def test_fetch_failure_is_failed_outcome(db_session, restaurant, supplier, partnership, catalog):
    gmail = FakeGmail([gmail_message("m1", "alice@gourmetsteak.com", "10 lettuce")])
    gmail.get_message = AsyncMock(side_effect=ChannelTransportError("get failed", status_code=500))
    report = await poll_channel(db_session, supplier, gmail)

    outcome = report.outcomes[0]
    assert outcome.status == FAILED
    assert outcome.sender is None
    assert "get failed" in outcome.error


@pytest.mark.asyncio
async def test_unauthorized_messages_do_not_block_later_orders(
    db_session, restaurant, supplier, partnership, catalog
):
    strangers = [gmail_message(f"s{i}", f"stranger{i}@example.com", "hello") for i in range(6)]
    gmail = FakeGmail(strangers + [gmail_message("m1", "alice@gourmetsteak.com", "10 lettuce")])
    with _oracle(intent_json([("lettuce", 10)])):
        report = await poll_channel(db_session, supplier, gmail, max_results=5)

    assert report.count(SKIPPED_UNAUTHORIZED) == 6
    assert report.outcomes[-1].status == CREATED
    assert gmail.labeled == {"m1": "LBL-1"}
    assert len(gmail.list_calls) == 2


@pytest.mark.asyncio
async def test_paging_stops_at_page_limit(db_session, restaurant, supplier, partnership, catalog):
    strangers = [gmail_message(f"s{i}", f"stranger{i}@example.com", "hello") for i in range(5)]
    gmail = FakeGmail(strangers + [gmail_message("m1", "alice@gourmetsteak.com", "10 lettuce")])
    with patch.object(channel_poller.settings, "gmail_max_pages", 1), _oracle() as mock_llm:
        report = await poll_channel(db_session, supplier, gmail, max_results=5)

    assert len(report.outcomes) == 5
    assert len(gmail.list_calls) == 1
    mock_llm.assert_not_awaited()


@pytest.mark.asyncio
async def test_consumed_messages_limited_to_max_results(
    db_session, restaurant, supplier, partnership, catalog
):
    gmail = FakeGmail([
        gmail_message(f"m{i}", "alice@gourmetsteak.com", "1 lettuce") for i in range(3)
    ])
    with _oracle(intent_json([("lettuce", 1)]), intent_json([("lettuce", 1)])):
        report = await poll_channel(db_session, supplier, gmail, max_results=2)

    assert [o.status for o in report.outcomes] == [CREATED, CREATED]
    assert "m2" not in gmail.labeled


@pytest.mark.asyncio
async def test_long_email_is_reported_truncated(db_session, restaurant, supplier, partnership, catalog):
    body = "10 lettuce " + "x" * 100
    gmail = FakeGmail([gmail_message("m1", "alice@gourmetsteak.com", body)])
    with patch.object(channel_poller.settings, "max_order_text_chars", 20), _oracle(intent_json([("lettuce", 10)])):
        report = await poll_channel(db_session, supplier, gmail)

    outcome = report.outcomes[0]
    assert outcome.status == CREATED
    assert outcome.truncated is True
    assert db_session.get(Order, outcome.order_id).notes == body
    assert report.to_dict()["outcomes"][0]["truncated"] is True


@pytest.mark.asyncio
async def test_preview_lists_only_partner_messages(db_session, restaurant, supplier, partnership, catalog):
    gmail = FakeGmail([
        gmail_message("m1", "Alice <alice@gourmetsteak.com>", "10 lettuce", subject="Weekly order"),
        gmail_message("m2", "stranger@example.com", "hello"),
    ])
    with _oracle() as mock_llm:
        previews = await preview_channel(db_session, supplier, gmail)

    assert previews == [
        {
            "message_id": "m1",
            "sender": "alice@gourmetsteak.com",
            "restaurant_id": restaurant.id,
            "subject": "Weekly order",
            "snippet": "10 lettuce",
        }
    ]
    assert gmail.labeled == {}
    mock_llm.assert_not_awaited()
