import datetime as dt

from draftwise.models.enums import SubscriptionStatus
from draftwise.services.subscription_snapshot import (
    epoch_to_datetime,
    expandable_id,
    owning_user_id,
    parse_status,
    subscription_record_values,
    to_plain,
)


def test_period_falls_back_to_first_item(make_subscription):
    sub = make_subscription(current_period_start=None, current_period_end=None)
    sub["items"]["data"][0].update({"current_period_start": 1_710_000_000, "current_period_end": 1_712_592_000})

    values = subscription_record_values(sub, "user_1")

    assert values["current_period_start"] == dt.datetime.fromtimestamp(1_710_000_000, tz=dt.timezone.utc)
    assert values["current_period_end"] == dt.datetime.fromtimestamp(1_712_592_000, tz=dt.timezone.utc)


def test_record_values_use_column_names(make_subscription):
    values = subscription_record_values(make_subscription(cancel_at_period_end=True), "user_1")
    assert values["metadata"] == {"supabaseUserId": "user_1"}
    assert values["cancel_at_period_end"] is True
    assert values["status"] is SubscriptionStatus.ACTIVE
    assert values["ended_at"] is None


def test_subscription_without_items_has_no_price(make_subscription):
    values = subscription_record_values(make_subscription(items={"data": []}), "user_1")
    assert values["price_id"] is None
    assert values["quantity"] is None


def test_unknown_status_maps_to_unknown():
    assert parse_status("paused") is SubscriptionStatus.PAUSED
    assert parse_status("brand_new_status") is SubscriptionStatus.UNKNOWN


def test_owning_user_id_honours_metadata_key(make_subscription):
    sub = make_subscription(metadata_key="appUserId")
    assert owning_user_id(sub, "appUserId") == "user_1"
    assert owning_user_id(sub, "supabaseUserId") is None


def test_helpers():
    assert expandable_id({"id": "cus_1", "object": "customer"}) == "cus_1"
    assert expandable_id("cus_2") == "cus_2"
    assert expandable_id(None) is None
    assert epoch_to_datetime(None) is None
    assert epoch_to_datetime(0) == dt.datetime(1970, 1, 1, tzinfo=dt.timezone.utc)
    assert to_plain({"a": ({"b": 1},)}) == {"a": [{"b": 1}]}
