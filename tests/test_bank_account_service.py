import pytest
from sqlmodel import select

from src.core.exceptions import AccountNameMismatchError, AuthorizationError
from src.core.security import decrypt_sensitive_data
from src.models.withdrawal import BankAccount, BankAccountType
from src.schemas.bank import BankAccountCreate
from src.services.bank_account_service import BankAccountService, names_match


def local_account(**overrides) -> BankAccountCreate:
    fields = {
        "bank_name": "GTBank",
        "bank_code": "058",
        "account_number": "0123456789",
        "account_name": "Amina  bello",
    }
    fields.update(overrides)
    return BankAccountCreate(**fields)


def test_names_match_ignores_case_and_spacing():
    assert names_match("Amina  bello", "AMINA BELLO")
    assert not names_match("Amina Bello", "AMINA B. BELLO")


@pytest.mark.asyncio
async def test_local_account_verified_with_recipient(db, counselor, paystack_gateway):
    account = await BankAccountService(db, gateway=paystack_gateway).save_account(
        counselor, local_account()
    )

    assert account.is_verified is True
    assert account.account_name == "AMINA BELLO"
    assert account.recipient_code == "RCP_test123"
    assert account.account_number_last4 == "6789"
    assert decrypt_sensitive_data(account.encrypted_account_number) == "0123456789"
    assert [call[0] for call in paystack_gateway.calls] == [
        "resolve_bank_account",
        "create_transfer_recipient",
    ]


@pytest.mark.asyncio
async def test_name_mismatch_rejected(db, counselor, paystack_gateway):
    counselor_id = counselor.id
    paystack_gateway.resolved_name = "CHIDI OKAFOR"

    with pytest.raises(AccountNameMismatchError) as exc_info:
        await BankAccountService(db, gateway=paystack_gateway).save_account(
            counselor, local_account()
        )

    assert exc_info.value.details["resolved_name"] == "CHIDI OKAFOR"
    await db.rollback()
    result = await db.execute(select(BankAccount).where(BankAccount.user_id == counselor_id))
    assert result.scalar_one_or_none() is None


@pytest.mark.asyncio
async def test_international_account_stored_unverified(db, counselor, paystack_gateway):
    data = BankAccountCreate(
        account_type=BankAccountType.INTERNATIONAL,
        bank_name="Barclays",
        account_name="Amina Bello",
        iban="gb29 nwbk 6016 1331 9268 19",
        swift_bic="nwbkgb2l",
        country="gb",
    )

    account = await BankAccountService(db, gateway=paystack_gateway).save_account(counselor, data)

    assert account.is_verified is False
    assert account.recipient_code is None
    assert account.swift_bic == "NWBKGB2L"
    assert account.country == "GB"
    assert decrypt_sensitive_data(account.encrypted_account_number) == "GB29NWBK60161331926819"
    assert paystack_gateway.calls == []


@pytest.mark.asyncio
async def test_replacing_account_keeps_single_row(db, counselor, paystack_gateway):
    service = BankAccountService(db, gateway=paystack_gateway)
    await service.save_account(counselor, local_account())
    await service.save_account(counselor, local_account(account_number="9876543210"))

    accounts = (await db.execute(select(BankAccount))).scalars().all()
    assert len(accounts) == 1
    assert accounts[0].account_number_last4 == "3210"


@pytest.mark.asyncio
async def test_clients_cannot_add_accounts(db, client_user, paystack_gateway):
    with pytest.raises(AuthorizationError):
        await BankAccountService(db, gateway=paystack_gateway).save_account(
            client_user, local_account()
        )
