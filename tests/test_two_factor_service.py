import re
from datetime import timedelta
from unittest.mock import patch

import pytest

from chatrelay.services.errors import (
    ChallengeExpired,
    ChallengeMismatch,
    ChallengeNotFound,
    DeliveryFailure,
    InvalidContact,
    InvalidCredentials,
    MissingContact,
    UnsupportedMethod,
)
from chatrelay.services.two_factor_service import generate_code

from conftest import ADMIN_EMAIL, RecordingChannel


class TestGenerateCode:
    def test_code_is_six_digits(self):
        for _ in range(50):
            assert re.fullmatch(r"\d{6}", generate_code())

    @patch("chatrelay.services.two_factor_service.secrets.randbelow", return_value=42)
    def test_code_is_zero_padded(self, _mock_randbelow):
        assert generate_code() == "000042"


class TestIssue:
    def test_issue_stores_and_delivers_code(self, two_factor_manager, whatsapp_channel, clock):
        challenge = two_factor_manager.issue(ADMIN_EMAIL, "whatsapp", "55 1234 5678")

        assert challenge.expires_at == clock.now + timedelta(minutes=5)
        assert two_factor_manager.store.get(ADMIN_EMAIL) == challenge
        assert len(whatsapp_channel.sent) == 1
        assert challenge.code in whatsapp_channel.sent[0][1]

    def test_phone_with_country_code_matches(self, two_factor_manager):
        challenge = two_factor_manager.issue(ADMIN_EMAIL, "whatsapp", "+52 (551) 234-5678")
        assert challenge.delivery_method == "whatsapp"

    def test_account_id_is_case_insensitive(self, two_factor_manager):
        challenge = two_factor_manager.issue("ADMIN@Example.com", "whatsapp", "5512345678")
        assert challenge.account_id == ADMIN_EMAIL

    def test_phone_mismatch_raises_invalid_contact(self, two_factor_manager, whatsapp_channel):
        with pytest.raises(InvalidContact):
            two_factor_manager.issue(ADMIN_EMAIL, "whatsapp", "5599999999")
        assert whatsapp_channel.sent == []
        assert two_factor_manager.store.get(ADMIN_EMAIL) is None

    def test_missing_phone_for_whatsapp(self, two_factor_manager):
        with pytest.raises(MissingContact):
            two_factor_manager.issue(ADMIN_EMAIL, "whatsapp", None)

    def test_telegram_needs_no_contact(self, two_factor_manager, telegram_channel):
        two_factor_manager.issue(ADMIN_EMAIL, "telegram")
        assert telegram_channel.sent[0][0] == "998877"

    def test_unknown_method(self, two_factor_manager):
        with pytest.raises(UnsupportedMethod):
            two_factor_manager.issue(ADMIN_EMAIL, "carrier-pigeon", "5512345678")

    def test_unknown_account(self, two_factor_manager):
        with pytest.raises(InvalidCredentials):
            two_factor_manager.issue("nobody@example.com", "whatsapp", "5512345678")

    def test_delivery_failure_is_surfaced(self, two_factor_manager):
        two_factor_manager.channels["whatsapp"] = RecordingChannel(ok=False)
        with pytest.raises(DeliveryFailure):
            two_factor_manager.issue(ADMIN_EMAIL, "whatsapp", "5512345678")

    def test_new_challenge_replaces_previous(self, two_factor_manager):
        with patch("chatrelay.services.two_factor_service.generate_code", side_effect=["111111", "222222"]):
            two_factor_manager.issue(ADMIN_EMAIL, "whatsapp", "5512345678")
            two_factor_manager.issue(ADMIN_EMAIL, "whatsapp", "5512345678")

        with pytest.raises(ChallengeMismatch):
            two_factor_manager.verify(ADMIN_EMAIL, "111111")
        two_factor_manager.verify(ADMIN_EMAIL, "222222")


class TestVerify:
    def test_correct_code_succeeds_exactly_once(self, two_factor_manager):
        challenge = two_factor_manager.issue(ADMIN_EMAIL, "whatsapp", "5512345678")

        two_factor_manager.verify(ADMIN_EMAIL, challenge.code)

        with pytest.raises(ChallengeNotFound):
            two_factor_manager.verify(ADMIN_EMAIL, challenge.code)

    def test_no_challenge(self, two_factor_manager):
        with pytest.raises(ChallengeNotFound):
            two_factor_manager.verify(ADMIN_EMAIL, "123456")

    def test_mismatch_keeps_challenge_for_retry(self, two_factor_manager):
        challenge = two_factor_manager.issue(ADMIN_EMAIL, "whatsapp", "5512345678")
        wrong = "000000" if challenge.code != "000000" else "111111"

        with pytest.raises(ChallengeMismatch):
            two_factor_manager.verify(ADMIN_EMAIL, wrong)

        two_factor_manager.verify(ADMIN_EMAIL, challenge.code)

    def test_expired_even_with_correct_code(self, two_factor_manager, clock):
        challenge = two_factor_manager.issue(ADMIN_EMAIL, "whatsapp", "5512345678")
        clock.advance(timedelta(minutes=5, seconds=1))

        with pytest.raises(ChallengeExpired):
            two_factor_manager.verify(ADMIN_EMAIL, challenge.code)

        assert two_factor_manager.store.get(ADMIN_EMAIL) is None

    def test_expired_with_wrong_code(self, two_factor_manager, clock):
        two_factor_manager.issue(ADMIN_EMAIL, "whatsapp", "5512345678")
        clock.advance(timedelta(minutes=6))

        with pytest.raises(ChallengeExpired):
            two_factor_manager.verify(ADMIN_EMAIL, "not-a-code")

    def test_valid_at_expiry_instant(self, two_factor_manager, clock):
        challenge = two_factor_manager.issue(ADMIN_EMAIL, "whatsapp", "5512345678")
        clock.advance(timedelta(minutes=5))

        two_factor_manager.verify(ADMIN_EMAIL, challenge.code)

    def test_lost_race_reports_not_found(self, two_factor_manager):
        challenge = two_factor_manager.issue(ADMIN_EMAIL, "whatsapp", "5512345678")

        with patch.object(two_factor_manager.store, "discard", return_value=False):
            with pytest.raises(ChallengeNotFound):
                two_factor_manager.verify(ADMIN_EMAIL, challenge.code)

    def test_expired_cleanup_keeps_newer_challenge(self, two_factor_manager, clock):
        two_factor_manager.issue(ADMIN_EMAIL, "whatsapp", "5512345678")
        clock.advance(timedelta(minutes=6))
        store = two_factor_manager.store
        original_get = store.get
        fresh = []

        def get_then_reissue(account_id):
            stale = original_get(account_id)
            # A new send-2fa lands right after verify read the stale record.
            fresh.append(two_factor_manager.issue(ADMIN_EMAIL, "whatsapp", "5512345678"))
            return stale

        with patch.object(store, "get", side_effect=get_then_reissue):
            with pytest.raises(ChallengeExpired):
                two_factor_manager.verify(ADMIN_EMAIL, "000000")

        assert store.get(ADMIN_EMAIL) == fresh[0]
        two_factor_manager.verify(ADMIN_EMAIL, fresh[0].code)
