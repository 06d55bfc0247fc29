"""Bank Account Service - payout account registration and verification."""

import logging

from sqlalchemy.ext.asyncio import AsyncSession
from sqlmodel import select

from src.core.exceptions import AccountNameMismatchError, AuthorizationError
from src.core.security import encrypt_sensitive_data, mask_account_number
from src.gateways.base import PaymentGateway
from src.gateways.factory import get_payment_gateway
from src.models.session import PaymentProvider
from src.models.user import User, UserRole
from src.models.withdrawal import BankAccount, BankAccountType
from src.schemas.bank import BankAccountCreate
from src.utils.helpers import utc_now

logger = logging.getLogger(__name__)


def names_match(submitted: str, resolved: str) -> bool:
    """Case- and whitespace-insensitive account name comparison."""
    return " ".join(submitted.split()).lower() == " ".join(resolved.split()).lower()


class BankAccountService:
    """Service for counselor payout accounts."""

    def __init__(self, db: AsyncSession, gateway: PaymentGateway | None = None):
        self.db = db
        self._gateway = gateway

    @property
    def gateway(self) -> PaymentGateway:
        if self._gateway is None:
            self._gateway = get_payment_gateway(PaymentProvider.PAYSTACK)
        return self._gateway

    async def get_account(self, user_id: int) -> BankAccount | None:
        result = await self.db.execute(select(BankAccount).where(BankAccount.user_id == user_id))
        return result.scalar_one_or_none()

    async def save_account(self, user: User, data: BankAccountCreate) -> BankAccount:
        """Add or replace a counselor's payout account.

        Local accounts are resolved through Paystack and must match the
        submitted name; on success the bank's spelling of the name is stored,
        a transfer recipient is created and the account is marked verified.
        International accounts are stored unverified.

        Raises:
            AuthorizationError: User is not a counselor
            AccountResolutionFailed: Paystack could not resolve the account
            AccountNameMismatchError: Names differ
            RecipientCreationFailed: Paystack rejected the recipient
        """
        if user.role != UserRole.COUNSELOR:
            raise AuthorizationError("Only counselors can add payout accounts")

        account = await self.get_account(user.id)  # type: ignore[arg-type]
        if account is None:
            account = BankAccount(
                user_id=user.id,  # type: ignore[arg-type]
                bank_name=data.bank_name,
                encrypted_account_number="",
                account_number_last4="",
                account_name=data.account_name,
            )

        # Any change resets verification
        account.account_type = data.account_type
        account.bank_name = data.bank_name
        account.country = data.country.upper()
        account.is_verified = False
        account.recipient_code = None
        account.updated_at = utc_now()

        if data.account_type == BankAccountType.LOCAL:
            account_number = data.account_number or ""
            bank_code = data.bank_code or ""
            resolved = await self.gateway.resolve_bank_account(account_number, bank_code)
            if not names_match(data.account_name, resolved.account_name):
                logger.info(f"Account name mismatch for user {user.id}")
                raise AccountNameMismatchError(
                    "Account name does not match bank records",
                    {"resolved_name": resolved.account_name},
                )
            account.account_name = resolved.account_name
            account.bank_code = bank_code
            account.swift_bic = None
            account.encrypted_account_number = encrypt_sensitive_data(account_number)
            account.account_number_last4 = mask_account_number(account_number)
            account.recipient_code = await self.gateway.create_transfer_recipient(
                resolved.account_name, account_number, bank_code
            )
            account.is_verified = True
        else:
            iban = (data.iban or "").replace(" ", "").upper()
            account.account_name = data.account_name
            account.bank_code = None
            account.swift_bic = (data.swift_bic or "").upper()
            account.encrypted_account_number = encrypt_sensitive_data(iban)
            account.account_number_last4 = mask_account_number(iban)

        self.db.add(account)
        await self.db.commit()
        await self.db.refresh(account)

        logger.info(
            f"Bank account saved for user {user.id} "
            f"({account.account_type.value}, verified={account.is_verified})"
        )
        return account
