"""
Tests for settings validation.
"""

import pytest
from pydantic import ValidationError

from ticket_engine.core.config import Settings


def test_defaults_keep_holds_longer_than_payment_wait():
    settings = Settings()
    assert settings.HOLD_TTL_SECONDS > settings.PAYMENT_CONFIRM_TIMEOUT_SECONDS


@pytest.mark.parametrize("hold_ttl, payment_timeout", [(5, 10.0), (10, 10.0)])
def test_hold_ttl_must_exceed_payment_timeout(hold_ttl, payment_timeout):
    with pytest.raises(ValidationError, match="HOLD_TTL_SECONDS"):
        Settings(HOLD_TTL_SECONDS=hold_ttl, PAYMENT_CONFIRM_TIMEOUT_SECONDS=payment_timeout)
