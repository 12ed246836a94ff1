"""Page controllers: cache reads, forms and mutations composed per view.

"Rendering" is out of scope here; a mounted page registers a callback that
receives every new :class:`QueryState` for its key.
"""

import logging
from pathlib import Path
from typing import Any, Callable, Optional, Union

from app.console.api import ConsoleError
from app.console.cache import TRANSACTIONS_POLL_SECONDS, QueryState, normalize_key
from app.console.context import Console
from app.console.export import CSV, export_report
from app.console.formatting import format_currency, format_duration, format_speed
from app.console.forms import FormState, stripped, voucher_prefix
from app.console.mutations import Mutation
from app.console.terminal import TerminalSession
from app.console.two_factor import TwoFactorFlow
from app.console.validation import (
    ValidationFailed,
    as_int,
    validate_hotspot_plan,
    validate_points,
    validate_pppoe_plan,
    validate_ticket,
    validate_voucher_batch,
    validate_wifi_user,
)

logger = logging.getLogger(__name__)


def _replace_item(items: Any, item_id: Any, **changes) -> Any:
    if not isinstance(items, list):
        return items
    return [dict(item, **changes) if item.get("id") == item_id else item for item in items]


def _remove_item(items: Any, item_id: Any) -> Any:
    if not isinstance(items, list):
        return items
    return [item for item in items if item.get("id") != item_id]


class PageController:
    key: Union[str, tuple] = ""

    def __init__(self, console: Console):
        self.console = console
        self._unsubscribe: Optional[Callable[[], None]] = None

    @property
    def state(self) -> Optional[QueryState]:
        return self.console.cache.peek(self.key)

    @property
    def data(self) -> Any:
        state = self.state
        return state.data if state else None

    async def mount(self, on_change: Optional[Callable[[tuple, QueryState], None]] = None) -> QueryState:
        self.unmount()
        self._unsubscribe = self.console.cache.subscribe(self.key, on_change or (lambda key, state: None))
        return await self.console.cache.get(self.key)

    def unmount(self) -> None:
        if self._unsubscribe is not None:
            self._unsubscribe()
            self._unsubscribe = None

    async def reload(self) -> QueryState:
        return await self.console.cache.fetch(self.key)

    def _check(self, form: FormState, validate: Callable[[dict], None]) -> bool:
        """Run ``validate`` on the form values; request bodies are built only after this passes."""
        try:
            validate(form.values)
        except ValidationFailed as exc:
            form.fail(exc)
            self.console.notifier.report(exc)
            return False
        return True

    async def _submit(self, form: FormState, mutation: Mutation) -> bool:
        try:
            await self.console.mutations.execute(mutation)
        except ValidationFailed as exc:
            form.fail(exc)
            return False
        except ConsoleError:
            return False
        form.close()
        return True

    async def _run(self, mutation: Mutation) -> Optional[Any]:
        try:
            return await self.console.mutations.execute(mutation)
        except ConsoleError:
            return None


HOTSPOT_PLAN_FORM = {
    "name": "",
    "description": "",
    "price": "",
    "durationSeconds": 3600,
    "uploadLimit": "",
    "downloadLimit": "",
    "maxDevices": 1,
}

PPPOE_PLAN_FORM = {
    "name": "",
    "description": "",
    "price": "",
    "speedMbps": "",
    "uploadLimit": "",
    "downloadLimit": "",
}


class PlansPage(PageController):
    def __init__(self, console: Console, plan_type: str = "HOTSPOT"):
        super().__init__(console)
        self.plan_type = plan_type
        self.key = f"/api/plans?type={plan_type}"
        initial = HOTSPOT_PLAN_FORM if plan_type == "HOTSPOT" else PPPOE_PLAN_FORM
        self.form = FormState(initial, normalizers={"name": stripped})

    def _body(self) -> dict:
        values = self.form.values
        body = {
            "name": values["name"],
            "description": values.get("description") or None,
            "price": as_int(values.get("price")),
            "uploadLimit": values.get("uploadLimit") or None,
            "downloadLimit": values.get("downloadLimit") or None,
        }
        if self.plan_type == "HOTSPOT":
            body["durationSeconds"] = as_int(values.get("durationSeconds"))
            body["maxDevices"] = as_int(values.get("maxDevices")) or 1
        else:
            body["speedMbps"] = as_int(values.get("speedMbps"))
        if not self.form.is_editing:
            body["planType"] = self.plan_type
        return body

    def open_create(self) -> None:
        self.form.open()

    def open_edit(self, plan: dict) -> None:
        fields = {name: plan.get(name) for name in self.form.initial if plan.get(name) is not None}
        self.form.open(fields, editing_id=plan["id"])

    async def submit(self) -> bool:
        editing = self.form.is_editing
        if not self._check(self.form, validate_hotspot_plan if self.plan_type == "HOTSPOT" else validate_pppoe_plan):
            return False
        body = self._body()
        mutation = Mutation(
            method="PATCH" if editing else "POST",
            path=f"/api/plans/{self.form.editing_id}" if editing else "/api/plans",
            body=body,
            success_title="Plan Updated" if editing else "Plan Created",
            success_message=f"{body['name']} has been saved.",
        )
        return await self._submit(self.form, mutation)

    async def delete(self, plan_id: int) -> bool:
        mutation = Mutation(
            method="DELETE",
            path=f"/api/plans/{plan_id}",
            optimistic={self.key: lambda plans: _remove_item(plans, plan_id)},
            success_title="Plan Deleted",
        )
        return await self._run(mutation) is not None

    async def toggle_active(self, plan: dict) -> bool:
        active = not plan.get("isActive", True)
        mutation = Mutation(
            method="PATCH",
            path=f"/api/plans/{plan['id']}",
            body={"isActive": active},
            optimistic={self.key: lambda plans: _replace_item(plans, plan["id"], isActive=active)},
        )
        return await self._run(mutation) is not None

    def cards(self) -> list[dict]:
        cards = []
        for plan in self.data or []:
            cards.append(
                {
                    "id": plan["id"],
                    "name": plan["name"],
                    "duration": f"for {format_duration(plan.get('durationSeconds'))}",
                    "price": format_currency(plan.get("price")),
                    "speed": format_speed(plan.get("speedMbps")),
                    "active": plan.get("isActive", True),
                }
            )
        return cards


class VoucherBatchesPage(PageController):
    key = "/api/voucher-batches"

    def __init__(self, console: Console):
        super().__init__(console)
        self.form = FormState(
            {"name": "", "planId": "", "quantity": 10, "prefix": "", "validUntil": ""},
            normalizers={"prefix": voucher_prefix, "name": stripped},
        )
        self.selected_batch_id: Optional[int] = None

    def open_create(self) -> None:
        self.form.open()

    async def submit(self) -> bool:
        if not self._check(self.form, validate_voucher_batch):
            return False
        values = self.form.values
        body = {
            "name": values["name"],
            "planId": as_int(values.get("planId")),
            "quantity": as_int(values.get("quantity")),
            "prefix": values.get("prefix") or None,
            "validUntil": values.get("validUntil") or None,
        }
        mutation = Mutation(
            method="POST",
            path="/api/voucher-batches",
            body=body,
            success_title="Vouchers Created",
            success_message=f"Successfully created {values.get('quantity')} vouchers.",
        )
        return await self._submit(self.form, mutation)

    def vouchers_key(self, batch_id: int) -> tuple:
        return normalize_key(("/api/voucher-batches", batch_id, "vouchers"))

    async def view_vouchers(self, batch_id: int) -> QueryState:
        self.selected_batch_id = batch_id
        return await self.console.cache.get(self.vouchers_key(batch_id))

    def close_vouchers(self) -> None:
        self.selected_batch_id = None

    async def disable_batch(self, batch_id: int) -> Optional[int]:
        result = await self._run(
            Mutation(
                method="POST",
                path=f"/api/voucher-batches/{batch_id}/disable",
                success_title="Batch Disabled",
            )
        )
        return result.get("disabled") if result else None


class LoyaltyPage(PageController):
    def __init__(self, console: Console):
        super().__init__(console)
        self.wifi_user_id: Optional[int] = None
        self.form = FormState({"points": "", "description": ""})

    @property
    def key(self) -> str:
        return f"/api/loyalty/{self.wifi_user_id}"

    async def select(self, wifi_user_id: int) -> QueryState:
        self.unmount()
        self.wifi_user_id = wifi_user_id
        self.form.reset()
        return await self.mount()

    @property
    def balance(self) -> Optional[int]:
        data = self.data
        return data.get("points") if data else None

    async def _change(self, action: str, check_balance: bool) -> bool:
        if self.wifi_user_id is None:
            return False
        values = self.form.values
        try:
            # The server re-checks the balance under a row lock; this only saves a round-trip.
            points = validate_points(values.get("points"), self.balance if check_balance else None)
        except ValidationFailed as exc:
            self.form.fail(exc)
            self.console.notifier.report(exc, "Error")
            return False
        mutation = Mutation(
            method="POST",
            path=f"/api/loyalty/{self.wifi_user_id}/{action}",
            body={"points": points, "description": values.get("description") or None},
            success_title="Success",
            success_message="Points added successfully" if action == "add" else "Points redeemed successfully",
        )
        return await self._submit(self.form, mutation)

    async def add_points(self) -> bool:
        return await self._change("add", check_balance=False)

    async def redeem_points(self) -> bool:
        return await self._change("redeem", check_balance=True)

    async def history(self) -> QueryState:
        return await self.console.cache.get(f"/api/loyalty/{self.wifi_user_id}/transactions")


class TicketsPage(PageController):
    def __init__(self, console: Console, status: Optional[str] = None):
        super().__init__(console)
        self.key = f"/api/tickets?status={status}" if status else "/api/tickets"
        self.form = FormState(
            {"subject": "", "issueDetails": "", "priority": "MEDIUM", "wifiUserId": None},
            normalizers={"subject": stripped},
        )
        self.close_form = FormState({"resolutionNotes": ""})

    def open_create(self) -> None:
        self.form.open()

    async def submit(self) -> bool:
        if not self._check(self.form, validate_ticket):
            return False
        values = self.form.values
        mutation = Mutation(
            method="POST",
            path="/api/tickets",
            body={
                "subject": values.get("subject"),
                "issueDetails": str(values.get("issueDetails") or "").strip(),
                "priority": values.get("priority") or "MEDIUM",
                "wifiUserId": as_int(values.get("wifiUserId")),
            },
            success_title="Ticket Created",
        )
        return await self._submit(self.form, mutation)

    async def set_status(self, ticket_id: int, status: str) -> bool:
        mutation = Mutation(
            method="PATCH",
            path=f"/api/tickets/{ticket_id}",
            body={"status": status},
            optimistic={self.key: lambda tickets: _replace_item(tickets, ticket_id, status=status)},
            success_title="Ticket Updated",
        )
        return await self._run(mutation) is not None

    def open_close(self, ticket_id: int) -> None:
        self.close_form.open(editing_id=ticket_id)

    async def close_ticket(self) -> bool:
        ticket_id = self.close_form.editing_id
        if ticket_id is None:
            return False
        mutation = Mutation(
            method="POST",
            path=f"/api/tickets/{ticket_id}/close",
            body={"resolutionNotes": self.close_form.get("resolutionNotes") or None},
            success_title="Ticket Closed",
        )
        return await self._submit(self.close_form, mutation)


class TransactionsPage(PageController):
    def __init__(self, console: Console, status: Optional[str] = None, poll_seconds: float = TRANSACTIONS_POLL_SECONDS):
        super().__init__(console)
        self.key = f"/api/transactions?status={status}" if status else "/api/transactions"
        self.poll_seconds = poll_seconds

    async def mount(self, on_change=None) -> QueryState:
        state = await super().mount(on_change)
        self.console.cache.start_polling(self.key, self.poll_seconds)
        return state

    def unmount(self) -> None:
        self.console.cache.stop_polling(self.key)
        super().unmount()

    async def verify(self, transaction_id: int) -> Optional[dict]:
        return await self._run(
            Mutation(
                method="POST",
                path=f"/api/transactions/{transaction_id}/verify",
                success_title="Status Checked",
            )
        )

    async def reconcile(self) -> Optional[dict]:
        result = await self._run(Mutation(method="POST", path="/api/transactions/reconcile"))
        if result is not None:
            self.console.notifier.success(
                "Reconciliation Complete",
                f"Checked {result.get('checked', 0)}, matched {result.get('matched', 0)}, "
                f"flagged {result.get('manualReview', 0)} for review.",
            )
        return result


class WifiUsersPage(PageController):
    def __init__(self, console: Console, status: Optional[str] = None, query: Optional[str] = None):
        super().__init__(console)
        params = {"status": status, "q": query}
        self.key = normalize_key(("/api/wifi-users", params))
        self.form = FormState(
            {"phoneNumber": "", "fullName": "", "email": "", "accountType": "HOTSPOT", "currentPlanId": None},
            normalizers={"phoneNumber": stripped, "fullName": stripped},
        )

    def open_create(self) -> None:
        self.form.open()

    async def submit(self) -> bool:
        if not self._check(self.form, validate_wifi_user):
            return False
        values = self.form.values
        mutation = Mutation(
            method="POST",
            path="/api/wifi-users",
            body={
                "phoneNumber": values.get("phoneNumber"),
                "fullName": values.get("fullName") or None,
                "email": values.get("email") or None,
                "accountType": values.get("accountType") or "HOTSPOT",
                "currentPlanId": as_int(values.get("currentPlanId")),
            },
            success_title="Customer Added",
        )
        return await self._submit(self.form, mutation)

    async def _set_status(self, user_id: int, action: str, status: str) -> bool:
        mutation = Mutation(
            method="POST",
            path=f"/api/wifi-users/{user_id}/{action}",
            optimistic={self.key: lambda users: _replace_item(users, user_id, status=status)},
            success_title="Customer Updated",
        )
        return await self._run(mutation) is not None

    async def suspend(self, user_id: int) -> bool:
        return await self._set_status(user_id, "suspend", "SUSPENDED")

    async def activate(self, user_id: int) -> bool:
        return await self._set_status(user_id, "activate", "ACTIVE")

    async def recharge(self, user_id: int, plan_id: Optional[int] = None, duration_seconds: Optional[int] = None) -> Optional[dict]:
        body = {"planId": plan_id, "durationSeconds": duration_seconds}
        return await self._run(
            Mutation(
                method="POST",
                path=f"/api/wifi-users/{user_id}/recharge",
                body={k: v for k, v in body.items() if v is not None},
                success_title="Account Recharged",
            )
        )


class ReportsPage(PageController):
    key = "/api/reports/financial"

    def __init__(self, console: Console, export_dir: Union[str, Path] = "."):
        super().__init__(console)
        self.export_dir = export_dir
        self.export_format = CSV

    async def load_financial(self, start_date: Optional[str] = None, end_date: Optional[str] = None) -> QueryState:
        self.key = normalize_key(("/api/reports/financial", {"startDate": start_date, "endDate": end_date}))
        return await self.console.cache.get(self.key)

    def _export(self, rows: list[dict], name: str) -> Optional[Path]:
        if not rows:
            self.console.notifier.error("Nothing to export", "The report has no rows.")
            return None
        path = export_report(rows, name, self.export_dir, self.export_format)
        self.console.notifier.success("Report exported", str(path))
        return path

    def export_daily_revenue(self) -> Optional[Path]:
        report = self.data or {}
        rows = [{"Date": day["date"], "Revenue": day["revenue"], "Transactions": day["count"]} for day in report.get("dailyRevenue", [])]
        return self._export(rows, "financial_report")

    def export_plan_performance(self) -> Optional[Path]:
        report = self.data or {}
        rows = [
            {"Plan": plan["planName"], "Revenue": plan["revenue"], "Transactions": plan["count"]}
            for plan in report.get("planRevenue", [])
        ]
        return self._export(rows, "plan_performance")

    async def export_reconciliation(self) -> Optional[Path]:
        state = await self.console.cache.get("/api/reports/reconciliation")
        if state.error is not None:
            self.console.notifier.report(state.error)
            return None
        rows = [
            {
                "Phone": tx.get("userPhone"),
                "Amount": tx.get("amount"),
                "Status": tx.get("status"),
                "Reconciliation": tx.get("reconciliationStatus"),
                "Receipt": tx.get("mpesaReceiptNumber"),
                "Date": tx.get("createdAt"),
            }
            for tx in (state.data or {}).get("transactions", [])
        ]
        return self._export(rows, "reconciliation_report")


class SecurityPage:
    def __init__(self, console: Console):
        self.console = console
        self.two_factor = TwoFactorFlow(console.client, console.notifier)

    async def mount(self) -> str:
        try:
            return await self.two_factor.refresh()
        except ConsoleError as exc:
            self.console.notifier.report(exc)
            return self.two_factor.state


class NetworkPage(PageController):
    """Router monitoring for one hotspot: stats, interfaces and live sessions."""

    def __init__(self, console: Console, hotspot_id: int):
        super().__init__(console)
        self.hotspot_id = hotspot_id
        self.key = f"/api/hotspots/{hotspot_id}/stats"

    def _path(self, name: str) -> str:
        return f"/api/hotspots/{self.hotspot_id}/{name}"

    async def interfaces(self) -> QueryState:
        return await self.console.cache.get(self._path("interfaces"))

    async def sessions(self) -> QueryState:
        return await self.console.cache.get(self._path("sessions"))

    async def check_connection(self) -> Optional[dict]:
        result = await self._run(Mutation(method="POST", path=self._path("test-connection")))
        if result is None:
            return None
        if result.get("success"):
            identity = (result.get("data") or {}).get("identity") or "router"
            self.console.notifier.success("Connection Successful", f"Connected to {identity}")
        else:
            self.console.notifier.error("Connection Failed", result.get("error") or "")
        return result

    async def disconnect(self, username: str) -> bool:
        sessions_key = self._path("sessions")
        result = await self._run(
            Mutation(
                method="POST",
                path=self._path("disconnect-user"),
                body={"username": username},
                optimistic={sessions_key: lambda rows: [row for row in rows or [] if row.get("user") != username]},
            )
        )
        if result is None:
            return False
        if not result.get("success"):
            self.console.notifier.error("Disconnect Failed", result.get("error") or "")
            await self.console.cache.fetch(sessions_key)
            return False
        removed = (result.get("data") or {}).get("disconnected", 0)
        self.console.notifier.success("User Disconnected", f"Closed {removed} session(s) for {username}")
        return True

    async def reboot(self) -> bool:
        result = await self._run(Mutation(method="POST", path=self._path("reboot")))
        if result is None:
            return False
        self.console.notifier.success("Reboot Initiated", result.get("message", ""))
        return True


class TerminalPage:
    def __init__(self, console: Console):
        self.console = console
        self.terminal = TerminalSession(console.client, console.notifier)

    async def hotspots(self) -> QueryState:
        return await self.console.cache.get("/api/hotspots")
