import asyncio
import json

import httpx

from app.console.api import ApiClient
from app.console.context import Console
from app.console.notifications import Notifier
from app.console.pages import LoyaltyPage, PlansPage, ReportsPage, TransactionsPage
from app.console.session import SUPERADMIN_SESSION_KEY, MemorySessionStore, SessionManager
from app.console.terminal import TerminalSession
from app.console.two_factor import DISABLED, ENABLED, SETUP_PENDING, TwoFactorFlow
from app.console.wizard import (
    BUSINESS,
    CREDENTIALS,
    PLAN,
    REDIRECT_DASHBOARD,
    VERIFICATION_PENDING,
    RegistrationWizard,
)
from app.main import app
from app.models import Tenant, User, UserRole

from conftest import TEST_PASSWORD


def _mock_client(handler):
    return ApiClient("http://console.test", transport=httpx.MockTransport(handler))


def _asgi_console(**kwargs):
    return Console("http://testserver", transport=httpx.ASGITransport(app=app), **kwargs)


def test_terminal_entries_follow_dispatch_order():
    async def scenario():
        release = asyncio.Event()
        arrived = []

        async def handler(request):
            command = json.loads(request.content)["command"]
            arrived.append(command)
            if command == "/system/resource/print":
                await release.wait()
            return httpx.Response(200, json={"command": command, "success": True, "output": [command]})

        terminal = TerminalSession(_mock_client(handler), Notifier(), hotspot_id=5)
        slow = asyncio.create_task(terminal.run("/system/resource/print"))
        while not arrived:
            await asyncio.sleep(0)
        fast = await terminal.run("/interface/print")
        assert [entry.sequence for entry in terminal.entries] == [2]
        assert list(terminal.pending) == [1]

        release.set()
        first = await slow
        return terminal, first, fast

    terminal, first, fast = asyncio.run(scenario())
    assert (first.sequence, fast.sequence) == (1, 2)
    assert [entry.command for entry in terminal.entries] == ["/system/resource/print", "/interface/print"]
    assert terminal.pending == {}
    assert terminal.history == ["/system/resource/print", "/interface/print"]


def test_terminal_requires_a_router_and_records_failures():
    def handler(request):
        return httpx.Response(400, json={"error": "Command 'reboot' is blocked for safety"})

    async def scenario():
        notifier = Notifier()
        terminal = TerminalSession(_mock_client(handler), notifier)
        skipped = await terminal.run("/interface/print")
        no_router = notifier.latest
        terminal.select_hotspot(3)
        failed = await terminal.run("/system/reboot")
        return skipped, no_router, failed, terminal

    skipped, no_router, failed, terminal = asyncio.run(scenario())
    assert skipped is None
    assert no_router.title == "No router selected"
    assert failed.success is False
    assert failed.error == "Command 'reboot' is blocked for safety"
    assert terminal.entries == [failed]


def _fill_basic(wizard):
    wizard.form.update({"businessName": "Sky Net", "subdomain": " SkyNet "})
    assert wizard.next()
    wizard.form.update(
        {
            "username": "skyadmin",
            "email": "owner@skynet.co.ke",
            "password": "Str0ng!Pass",
            "confirmPassword": "Str0ng!Pass",
        }
    )
    assert wizard.next()


def test_wizard_keeps_step_on_validation_errors():
    def handler(request):
        raise AssertionError("nothing should be sent")

    session = SessionManager(MemorySessionStore())
    wizard = RegistrationWizard(_mock_client(handler), session, Notifier())
    wizard.form.update({"businessName": "", "subdomain": "bad domain"})
    assert wizard.next() is False
    assert wizard.step == BUSINESS
    assert set(wizard.form.errors) == {"businessName", "subdomain"}

    _fill_basic(wizard)
    assert wizard.step == PLAN
    wizard.back()
    assert wizard.step == CREDENTIALS
    wizard.next()

    wizard.form.update({"subscriptionTier": "PREMIUM", "paymentMethod": "MPESA"})
    assert asyncio.run(wizard.submit()) is None
    assert wizard.form.errors == {"phoneNumber": "Please enter your M-Pesa phone number"}


def test_basic_registration_signs_in_and_lands_on_dashboard(db):
    async def scenario():
        async with _asgi_console() as console:
            wizard = RegistrationWizard(console.client, console.session, console.notifier)
            _fill_basic(wizard)
            wizard.form.set("subscriptionTier", "BASIC")
            outcome = await wizard.submit()
            return outcome, console.session.user, console.notifier.latest

    outcome, user, notification = asyncio.run(scenario())
    assert outcome == REDIRECT_DASHBOARD
    assert user["username"] == "skyadmin"
    assert user["role"] == "admin"
    assert notification.title == "Welcome to Mnetifi!"
    assert db.query(Tenant).filter(Tenant.subdomain == "skynet").one().trial_expires_at is not None


def test_premium_registration_waits_for_email_verification(db):
    async def scenario():
        async with _asgi_console() as console:
            wizard = RegistrationWizard(console.client, console.session, console.notifier)
            _fill_basic(wizard)
            wizard.form.update({"subscriptionTier": "PREMIUM", "paymentMethod": "CARD"})
            outcome = await wizard.submit()
            return outcome, console.session.is_authenticated

    outcome, signed_in = asyncio.run(scenario())
    assert outcome == VERIFICATION_PENDING
    assert signed_in is False
    assert db.query(User).filter(User.username == "skyadmin").one().email_verified is False


def test_duplicate_subdomain_is_reported(tenant):
    async def scenario():
        async with _asgi_console() as console:
            wizard = RegistrationWizard(console.client, console.session, console.notifier)
            wizard.form.update({"businessName": "Copy", "subdomain": tenant.subdomain})
            wizard.next()
            wizard.form.update(
                {
                    "username": "copycat",
                    "email": "copy@example.com",
                    "password": "Str0ng!Pass",
                    "confirmPassword": "Str0ng!Pass",
                }
            )
            wizard.next()
            wizard.form.set("subscriptionTier", "BASIC")
            return await wizard.submit(), wizard.step, console.notifier.latest

    outcome, step, notification = asyncio.run(scenario())
    assert outcome is None
    assert step == PLAN
    assert notification.title == "Registration Failed"
    assert notification.description == "Subdomain is already taken"


def _two_factor_handler(disable_status):
    def handler(request):
        path = request.url.path
        if path.endswith("/status"):
            return httpx.Response(200, json={"enabled": True})
        if path.endswith("/disable"):
            if disable_status == 200:
                return httpx.Response(200, json={"message": "Two-factor authentication disabled"})
            return httpx.Response(disable_status, json={"error": "Invalid verification code"})
        if path.endswith("/setup"):
            return httpx.Response(200, json={"secret": "JBSWY3DPEHPK3PXP", "otpauthUrl": "otpauth://totp/x"})
        return httpx.Response(200, json={"message": "ok"})

    return handler


def test_two_factor_setup_and_cancel():
    async def scenario():
        flow = TwoFactorFlow(_mock_client(_two_factor_handler(200)), Notifier())
        assert await flow.start_setup()
        assert flow.state == SETUP_PENDING
        assert flow.secret == "JBSWY3DPEHPK3PXP"
        flow.cancel_setup()
        assert flow.state == DISABLED and flow.secret is None

        await flow.start_setup()
        assert await flow.verify("12ab") is False
        assert flow.state == SETUP_PENDING
        assert await flow.verify("123456") is True
        return flow.state

    assert asyncio.run(scenario()) == ENABLED


def test_failed_disable_keeps_dialog_and_draft():
    async def scenario():
        notifier = Notifier()
        flow = TwoFactorFlow(_mock_client(_two_factor_handler(400)), notifier)
        await flow.refresh()
        flow.open_disable()
        flow.disable_form.update({"password": TEST_PASSWORD, "code": "000000"})
        result = await flow.disable()
        return flow, result, notifier.latest

    flow, result, notification = asyncio.run(scenario())
    assert result is False
    assert flow.state == ENABLED
    assert flow.disable_form.is_open
    assert flow.disable_form.values == {"password": TEST_PASSWORD, "code": "000000"}
    assert notification.description == "Invalid verification code"


def test_disable_requires_password_before_sending():
    sent = []

    def handler(request):
        sent.append(request.url.path)
        return _two_factor_handler(200)(request)

    async def scenario():
        flow = TwoFactorFlow(_mock_client(handler), Notifier())
        await flow.refresh()
        flow.open_disable()
        flow.disable_form.set("code", "123456")
        return flow, await flow.disable()

    flow, result = asyncio.run(scenario())
    assert result is False
    assert flow.disable_form.errors == {"password": "Password is required"}
    assert sent == ["/api/auth/2fa/status"]


def test_successful_disable_closes_dialog():
    async def scenario():
        flow = TwoFactorFlow(_mock_client(_two_factor_handler(200)), Notifier())
        await flow.refresh()
        flow.open_disable()
        flow.disable_form.update({"password": TEST_PASSWORD, "code": "123456"})
        return flow, await flow.disable()

    flow, result = asyncio.run(scenario())
    assert result is True
    assert flow.state == DISABLED
    assert not flow.disable_form.is_open
    assert flow.disable_form.values == {"password": "", "code": ""}


def test_console_login_and_logout_against_the_app(admin):
    async def scenario():
        async with _asgi_console() as console:
            failed = await console.login("admin", "wrong")
            failure = console.notifier.latest
            user = await console.login("admin", TEST_PASSWORD)
            allowed = console.guard.allows()
            me = await console.client.get("/api/auth/me")
            await console.logout()
            return failed, failure, user, allowed, me, console.session.user

    failed, failure, user, allowed, me, after_logout = asyncio.run(scenario())
    assert failed is None
    assert failure.title == "Login failed"
    assert failure.description == "Invalid credentials"
    assert user["id"] == admin.id
    assert allowed is True
    assert me["username"] == "admin"
    assert after_logout is None


def test_superadmin_console_rejects_tenant_admins(admin):
    async def scenario():
        async with _asgi_console(session_key=SUPERADMIN_SESSION_KEY) as console:
            user = await console.login("admin", TEST_PASSWORD)
            return user, console.notifier.latest, console.guard.redirect_for()

    user, notification, redirect = asyncio.run(scenario())
    assert user is None
    assert notification.description == "Superadmin access required"
    assert redirect == "/superadmin/login"


def test_plans_page_creates_plan_and_refreshes_list(admin):
    async def scenario():
        async with _asgi_console() as console:
            await console.login("admin", TEST_PASSWORD)
            page = PlansPage(console)
            await page.mount()
            assert page.data == []

            page.open_create()
            page.form.update({"name": "  ", "price": "0"})
            assert await page.submit() is False
            assert page.form.is_open
            assert set(page.form.errors) == {"name", "price"}

            page.form.update({"name": "Hourly", "price": "20", "durationSeconds": 3600})
            created = await page.submit()
            return created, page.form.is_open, page.cards(), console.notifier.latest

    created, still_open, cards, notification = asyncio.run(scenario())
    assert created is True
    assert still_open is False
    assert cards == [
        {"id": cards[0]["id"], "name": "Hourly", "duration": "for 1 hour", "price": "KES 20", "speed": "Unlimited", "active": True}
    ]
    assert notification.title == "Plan Created"


def _loyalty_console(server_points):
    redeemed = []

    def handler(request):
        if request.method == "GET":
            return httpx.Response(200, json={"wifiUserId": 7, "points": 30})
        redeemed.append(json.loads(request.content))
        if redeemed[-1]["points"] > server_points:
            return httpx.Response(400, json={"error": "Insufficient points balance"})
        return httpx.Response(200, json={"wifiUserId": 7, "points": server_points - redeemed[-1]["points"]})

    return Console("http://console.test", transport=httpx.MockTransport(handler)), redeemed


def test_loyalty_redeem_is_prechecked_against_cached_balance():
    console, redeemed = _loyalty_console(server_points=30)

    async def scenario():
        page = LoyaltyPage(console)
        await page.select(7)
        page.form.update({"points": "40"})
        result = await page.redeem_points()
        await console.aclose()
        return page, result

    page, result = asyncio.run(scenario())
    assert result is False
    assert redeemed == []
    assert page.form.errors == {"points": "Insufficient points balance"}
    assert console.notifier.latest.title == "Error"


def test_loyalty_redeem_surfaces_the_server_recheck():
    # Balance is stale in the cache: another operator already spent most of it.
    console, redeemed = _loyalty_console(server_points=5)

    async def scenario():
        page = LoyaltyPage(console)
        await page.select(7)
        page.form.open({"points": "20"})
        result = await page.redeem_points()
        await console.aclose()
        return page, result

    page, result = asyncio.run(scenario())
    assert result is False
    assert redeemed == [{"points": 20, "description": None}]
    assert page.form.is_open
    assert page.form.get("points") == "20"
    assert console.notifier.latest.description == "Insufficient points balance"


def test_transactions_page_polls_while_mounted():
    calls = []

    def handler(request):
        calls.append(request.url.path)
        return httpx.Response(200, json=[])

    async def scenario():
        console = Console("http://console.test", transport=httpx.MockTransport(handler))
        page = TransactionsPage(console, poll_seconds=0.01)
        await page.mount()
        await asyncio.sleep(0.06)
        page.unmount()
        polled = len(calls)
        await asyncio.sleep(0.03)
        await console.aclose()
        return polled, console.cache.is_polling(page.key)

    polled, still_polling = asyncio.run(scenario())
    assert polled >= 2
    assert len(calls) == polled
    assert still_polling is False


def test_reports_page_exports_loaded_report(tmp_path, premium_admin):
    async def scenario():
        async with _asgi_console() as console:
            await console.login("padmin", TEST_PASSWORD)
            page = ReportsPage(console, export_dir=tmp_path)
            await page.load_financial()
            empty = page.export_daily_revenue()
            page.console.cache.set_data(
                page.key,
                {"dailyRevenue": [{"date": "2026-05-01", "revenue": 150, "count": 3}], "planRevenue": []},
            )
            return empty, page.export_daily_revenue(), page.export_plan_performance(), console.notifier.latest

    empty, path, plans_path, notification = asyncio.run(scenario())
    assert empty is None
    assert plans_path is None
    assert notification.title == "Nothing to export"
    assert path.parent == tmp_path
    assert path.name.startswith("financial_report_")
    assert path.read_text(encoding="utf-8") == "Date,Revenue,Transactions\n2026-05-01,150,3"


def test_tech_console_login_respects_admin_guard(make_user, tenant):
    make_user(tenant, UserRole.TECH, username="fieldtech")

    async def scenario():
        async with _asgi_console() as console:
            user = await console.login("fieldtech", TEST_PASSWORD)
            return user, console.guard.redirect_for()

    user, redirect = asyncio.run(scenario())
    assert user["role"] == "tech"
    assert redirect == "/login"
