import pytest

from application.dtos.settings import CommissionSettingsDTO, PaymentSettingsUpdateDTO
from application.services.settings_service import SettingsService, apply_updates
from domain.settings.gateway import mask_secret
from tests.conftest import RAZORPAY_CONFIG


def test_mask_secret_keeps_last_four():
    assert mask_secret("rzp_secret_abcd") == "***********abcd"
    assert mask_secret("abc") == "****"
    assert mask_secret("") == ""


def test_apply_updates_ignores_masked_values_and_id():
    current = {"id": "razorpay", "enabled": False, "config": {"keyId": "k1", "keySecret": "s3cret"}}
    merged = apply_updates(
        current,
        {"id": "other", "enabled": True, "config": {"keyId": "k2", "keySecret": "**cret"}},
    )
    assert merged["id"] == "razorpay"
    assert merged["enabled"] is True
    assert merged["config"] == {"keyId": "k2", "keySecret": "s3cret"}


@pytest.mark.asyncio
async def test_payment_settings_are_masked(uow_factory, enable_gateway):
    await enable_gateway("razorpay", RAZORPAY_CONFIG)
    service = SettingsService(uow_factory)

    methods = await service.get_payment_settings()

    assert methods["razorpay"]["enabled"] is True
    assert methods["razorpay"]["config"]["keyId"] == "rzp_test_key"
    assert methods["razorpay"]["config"]["keySecret"] == "******cret"
    assert methods["cod"]["type"] == "offline"


@pytest.mark.asyncio
async def test_update_keeps_secret_when_masked_value_is_echoed(uow_factory, enable_gateway):
    await enable_gateway("razorpay", RAZORPAY_CONFIG, enabled=False)
    service = SettingsService(uow_factory)

    await service.update_payment_settings(
        PaymentSettingsUpdateDTO(
            method_id="razorpay",
            updates={"enabled": True, "config": {"keySecret": "******cret", "keyId": "rzp_live_key"}},
        ),
        actor="admin-1",
    )

    async with uow_factory(readonly=True) as uow:
        stored = await uow.setting_repository.get_latest("payment_razorpay")
    assert stored.value["enabled"] is True
    assert stored.value["config"]["keySecret"] == "rzp_secret"
    assert stored.value["config"]["keyId"] == "rzp_live_key"


@pytest.mark.asyncio
async def test_dedupe_keeps_newest_row(uow_factory, seed_setting):
    await seed_setting("payment_paytm", {"id": "paytm", "enabled": False})
    newest = await seed_setting("payment_paytm", {"id": "paytm", "enabled": True})
    service = SettingsService(uow_factory)

    result = await service.dedupe("payment_paytm")

    assert result.removed == 1
    assert result.kept_id == newest.id
    async with uow_factory(readonly=True) as uow:
        rows = await uow.setting_repository.list_by_key("payment_paytm")
    assert [row.id for row in rows] == [newest.id]

    empty = await service.dedupe("payment_unknown")
    assert empty.removed == 0
    assert empty.kept_id is None


@pytest.mark.asyncio
async def test_commission_settings_round_trip(uow_factory):
    service = SettingsService(uow_factory)
    default = await service.get_commission_settings()
    assert default.type == "fixed_per_rupee"

    await service.update_commission_settings(CommissionSettingsDTO(type="percentage", value=5))
    current = await service.get_commission_settings()
    assert current.type == "percentage"
    assert current.value == 5


def test_apply_updates_keeps_starred_non_secret_values():
    current = {"id": "paytm", "config": {"websiteName": "WEBSTAGING", "merchantKey": "abcdefgh12345678"}}
    merged = apply_updates(current, {"config": {"websiteName": "*STORE*", "merchantKey": "************5678"}})
    assert merged["config"] == {"websiteName": "*STORE*", "merchantKey": "abcdefgh12345678"}
