from datetime import datetime, timedelta
from unittest.mock import AsyncMock

import pytest
from fastapi import HTTPException, status

from app.features.auth.models.token import AuthToken, OtpPurpose, TokenType
from app.features.auth.models.user import UserRole
from app.features.auth.schemas.auth import LoginRequest, SignupRequest
from app.features.auth.schemas.password_reset import ResetPasswordRequest
from app.features.auth.services.auth_service import AuthService
from app.features.auth.services.otp_service import OtpService
from app.features.auth.services.token_service import TokenService
from app.features.auth.utils.security import verify_password
from app.platform.utils.cooldown import InMemoryCooldownStore

PASSWORD = "Secret123"


class FakeClock:
    def __init__(self):
        self.value = 5000.0

    def __call__(self):
        return self.value


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def otp_sender():
    return AsyncMock()


@pytest.fixture
def auth_service(db_session, clock, otp_sender):
    return AuthService(
        db_session,
        cooldowns=InMemoryCooldownStore(clock=clock),
        otp_service=OtpService(db_session, sender=otp_sender),
    )


@pytest.mark.asyncio
async def test_injected_empty_cooldown_store_is_used(db_session, clock):
    store = InMemoryCooldownStore(clock=clock)
    assert len(store) == 0

    service = AuthService(db_session, cooldowns=store)

    assert service.cooldowns is store


async def _enable_two_factor(auth_service, account):
    security = await auth_service.get_security_settings(account.id)
    security.two_factor_enabled = True
    await auth_service.db.commit()


@pytest.mark.asyncio
async def test_register_issues_tokens(auth_service):
    result = await auth_service.register_account(
        SignupRequest(
            full_name="Dana Scully",
            email="Dana@Example.com",
            password=PASSWORD,
            confirm_password=PASSWORD,
            company_name="Acme Corp",
        )
    )

    assert result["token_type"] == "bearer"
    assert result["user"].email == "dana@example.com"
    assert result["user"].role == UserRole.SALES_REPRESENTATIVE.value
    assert await TokenService(auth_service.db).get_account_for_token(result["access_token"])


@pytest.mark.asyncio
async def test_register_rejects_duplicates_and_mismatches(auth_service, make_account):
    await make_account(email="taken@example.com")

    with pytest.raises(HTTPException) as exc:
        await auth_service.register_account(
            SignupRequest(
                full_name="Someone Else",
                email="taken@example.com",
                password=PASSWORD,
                confirm_password=PASSWORD,
            )
        )
    assert exc.value.status_code == status.HTTP_409_CONFLICT

    with pytest.raises(HTTPException) as exc:
        await auth_service.register_account(
            SignupRequest(
                full_name="Someone Else",
                email="fresh@example.com",
                password=PASSWORD,
                confirm_password="Different123",
            )
        )
    assert exc.value.status_code == status.HTTP_400_BAD_REQUEST


@pytest.mark.asyncio
async def test_login_without_two_factor_returns_tokens(auth_service, make_account):
    account = await make_account(email="plain@example.com", password=PASSWORD)

    payload, requires_two_factor = await auth_service.login(
        LoginRequest(email="plain@example.com", password=PASSWORD)
    )

    assert requires_two_factor is False
    assert payload["user"].id == account.id
    assert payload["access_token"]


@pytest.mark.asyncio
async def test_login_rejects_bad_password(auth_service, make_account):
    await make_account(email="plain@example.com", password=PASSWORD)

    with pytest.raises(HTTPException) as exc:
        await auth_service.login(LoginRequest(email="plain@example.com", password="Wrong1234"))

    assert exc.value.status_code == status.HTTP_401_UNAUTHORIZED


@pytest.mark.asyncio
async def test_two_factor_login_cooldown(auth_service, clock, otp_sender, make_account):
    account = await make_account(email="guarded@example.com", password=PASSWORD)
    await _enable_two_factor(auth_service, account)
    request = LoginRequest(email="guarded@example.com", password=PASSWORD)

    payload, requires_two_factor = await auth_service.login(request)
    assert requires_two_factor is True
    assert payload["requires_two_factor"] is True
    assert "access_token" not in payload
    assert otp_sender.await_count == 1

    clock.value += 1
    with pytest.raises(HTTPException) as exc:
        await auth_service.login(request)
    assert exc.value.status_code == status.HTTP_429_TOO_MANY_REQUESTS
    assert "Please wait 4 seconds" in exc.value.detail
    assert otp_sender.await_count == 1

    clock.value += 4
    _, requires_two_factor = await auth_service.login(request)
    assert requires_two_factor is True
    assert otp_sender.await_count == 2


@pytest.mark.asyncio
async def test_two_factor_login_completes_with_code(auth_service, otp_sender, make_account):
    account = await make_account(email="guarded@example.com", password=PASSWORD)
    await _enable_two_factor(auth_service, account)

    await auth_service.login(LoginRequest(email="guarded@example.com", password=PASSWORD))
    code = otp_sender.call_args.args[1]

    tokens = await auth_service.login_with_two_factor("guarded@example.com", code)

    assert tokens["user"].id == account.id
    with pytest.raises(HTTPException):
        await auth_service.login_with_two_factor("guarded@example.com", code)


@pytest.mark.asyncio
async def test_forgot_password_unknown_email(auth_service):
    with pytest.raises(HTTPException) as exc:
        await auth_service.forgot_password("nobody@example.com")

    assert exc.value.status_code == status.HTTP_404_NOT_FOUND
    assert exc.value.detail == "Email not found in our database"


@pytest.mark.asyncio
async def test_reset_password_revokes_sessions(auth_service, otp_sender, make_account):
    account = await make_account(email="reset@example.com", password=PASSWORD)
    tokens = await TokenService(auth_service.db).issue_pair(account.id)

    await auth_service.forgot_password("reset@example.com")
    code = otp_sender.call_args.args[1]
    assert otp_sender.call_args.args[2] == OtpPurpose.PASSWORD_RESET

    updated = await auth_service.reset_password(
        ResetPasswordRequest(
            email="reset@example.com",
            otp=code,
            new_password="Brandnew456",
            confirm_password="Brandnew456",
        )
    )

    assert verify_password("Brandnew456", updated.password_hash)
    assert await TokenService(auth_service.db).get_account_for_token(tokens["access_token"]) is None
    security = await auth_service.get_security_settings(account.id)
    assert security.last_password_change is not None


@pytest.mark.asyncio
async def test_two_factor_send_is_generic_for_unknown_email(auth_service, otp_sender):
    message = await auth_service.send_two_factor_code("ghost@example.com")

    assert message == "If the email exists, an OTP has been sent"
    otp_sender.assert_not_awaited()


@pytest.mark.asyncio
async def test_enable_two_factor_applies_cooldown(auth_service, clock, otp_sender, make_account):
    account = await make_account(email="enable@example.com")

    first = await auth_service.enable_two_factor(account)
    second = await auth_service.enable_two_factor(account)

    assert "verification code has been sent" in first
    assert second.startswith("OTP was already sent")
    assert otp_sender.await_count == 1
    assert (await auth_service.get_two_factor_status(account))["enabled"] is True


@pytest.mark.asyncio
async def test_expired_token_is_deleted_on_use(db_session, make_account):
    account = await make_account()
    tokens = TokenService(db_session)
    stored = await tokens.create_access_token(account.id)
    stored.expires_at = datetime.utcnow() - timedelta(minutes=1)
    await db_session.commit()

    assert await tokens.validate(stored.token, TokenType.ACCESS) is None
    assert await db_session.get(AuthToken, stored.id) is None
