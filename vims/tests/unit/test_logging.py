"""
Unit tests for logging processors.
"""

from vims.core.logging import (
    add_correlation_id,
    drop_color_message_key,
    mask_personal_data,
    mask_value,
    set_correlation_id,
)


def test_mask_keeps_last_four():
    assert mask_value("900101-14-5678") == "**********5678"
    assert mask_value("ahmad@example.com").endswith(".com")


def test_short_and_non_string_values_untouched():
    assert mask_value("1234") == "1234"
    assert mask_value(None) is None
    assert mask_value(42) == 42


def test_processor_masks_only_personal_keys():
    event = {
        "event": "registration_blocked",
        "ic_number": "900101-14-5678",
        "contact": "012-9876543",
        "blacklist_id": "bl-1234567",
    }

    result = mask_personal_data(None, "warning", event)

    assert result["ic_number"] == "**********5678"
    assert result["contact"] == "*******6543"
    assert result["blacklist_id"] == "bl-1234567"


def test_correlation_id_is_added():
    cid = set_correlation_id("scan-42")

    assert add_correlation_id(None, "info", {"event": "access_decision"})["correlation_id"] == cid


def test_color_message_is_dropped():
    assert drop_color_message_key(None, "info", {"event": "x", "color_message": "y"}) == {"event": "x"}
