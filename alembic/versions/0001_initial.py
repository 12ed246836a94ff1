"""initial

Revision ID: 0001_initial
Revises:
Create Date: 2026-10-19
"""
from alembic import op
import sqlalchemy as sa

revision = "0001_initial"
down_revision = None
branch_labels = None
depends_on = None


def _timestamps():
    return [
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.text("now()"), nullable=False),
        sa.Column("updated_at", sa.DateTime(timezone=True), server_default=sa.text("now()"), nullable=False),
    ]


def upgrade():
    op.create_table(
        "tenants",
        sa.Column("id", sa.Integer, primary_key=True),
        sa.Column("name", sa.String(255), nullable=False),
        sa.Column("subdomain", sa.String(63), nullable=False),
        sa.Column("website", sa.String(255), nullable=True),
        sa.Column("email", sa.String(255), nullable=True),
        sa.Column("phone", sa.String(32), nullable=True),
        sa.Column("branding_config", sa.JSON, nullable=True),
        sa.Column("mpesa_shortcode", sa.String(32), nullable=True),
        sa.Column("mpesa_passkey", sa.String(255), nullable=True),
        sa.Column("mpesa_consumer_key", sa.String(255), nullable=True),
        sa.Column("mpesa_consumer_secret", sa.String(255), nullable=True),
        sa.Column("sms_provider", sa.String(32), nullable=True),
        sa.Column("sms_api_key", sa.String(255), nullable=True),
        sa.Column("sms_username", sa.String(128), nullable=True),
        sa.Column("sms_sender_id", sa.String(32), nullable=True),
        sa.Column("subscription_tier", sa.Enum("BASIC", "PREMIUM", name="subscriptiontier"), nullable=False),
        sa.Column("trial_expires_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("subscription_expires_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column(
            "saas_billing_status",
            sa.Enum("ACTIVE", "TRIAL", "SUSPENDED", "BLOCKED", name="saasbillingstatus"),
            nullable=False,
        ),
        sa.Column("is_active", sa.Boolean, nullable=False, server_default=sa.text("true")),
        sa.Column("registration_payment_method", sa.String(32), nullable=True),
        sa.Column("registration_payment_status", sa.String(32), nullable=True),
        sa.Column("registration_payment_ref", sa.String(64), nullable=True),
        *_timestamps(),
    )
    op.create_index("ix_tenants_subdomain", "tenants", ["subdomain"], unique=True)
    op.create_index("ix_tenants_status_active", "tenants", ["saas_billing_status", "is_active"], unique=False)

    op.create_table(
        "users",
        sa.Column("id", sa.Integer, primary_key=True),
        sa.Column("tenant_id", sa.Integer, sa.ForeignKey("tenants.id"), nullable=True),
        sa.Column("username", sa.String(64), nullable=False),
        sa.Column("email", sa.String(255), nullable=False),
        sa.Column("full_name", sa.String(255), nullable=True),
        sa.Column("hashed_password", sa.String(255), nullable=False),
        sa.Column("role", sa.Enum("SUPERADMIN", "ADMIN", "TECH", name="userrole"), nullable=False),
        sa.Column("is_active", sa.Boolean, nullable=False, server_default=sa.text("true")),
        sa.Column("email_verified", sa.Boolean, nullable=False, server_default=sa.text("false")),
        sa.Column("reset_token", sa.String(128), nullable=True),
        sa.Column("reset_token_expires_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("verification_token", sa.String(128), nullable=True),
        sa.Column("verification_token_expires_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("two_factor_enabled", sa.Boolean, nullable=False, server_default=sa.text("false")),
        sa.Column("two_factor_secret", sa.String(64), nullable=True),
        *_timestamps(),
    )
    op.create_index("ix_users_tenant_id", "users", ["tenant_id"], unique=False)
    op.create_index("ix_users_username", "users", ["username"], unique=True)
    op.create_index("ix_users_email", "users", ["email"], unique=True)
    op.create_index("ix_users_role_active", "users", ["role", "is_active"], unique=False)
    op.create_index("ix_users_reset_token", "users", ["reset_token"], unique=False)
    op.create_index("ix_users_verification_token", "users", ["verification_token"], unique=False)

    op.create_table(
        "hotspots",
        sa.Column("id", sa.Integer, primary_key=True),
        sa.Column("tenant_id", sa.Integer, sa.ForeignKey("tenants.id"), nullable=False),
        sa.Column("location_name", sa.String(255), nullable=False),
        sa.Column("description", sa.Text, nullable=True),
        sa.Column("nas_ip", sa.String(64), nullable=False),
        sa.Column("secret", sa.String(255), nullable=False),
        sa.Column("router_api_ip", sa.String(64), nullable=True),
        sa.Column("router_api_user", sa.String(64), nullable=True),
        sa.Column("router_api_pass", sa.String(255), nullable=True),
        sa.Column("router_api_port", sa.Integer, nullable=False, server_default="8728"),
        sa.Column("is_active", sa.Boolean, nullable=False, server_default=sa.text("true")),
        *_timestamps(),
    )
    op.create_index("ix_hotspots_tenant_id", "hotspots", ["tenant_id"], unique=False)

    op.create_table(
        "plans",
        sa.Column("id", sa.Integer, primary_key=True),
        sa.Column("tenant_id", sa.Integer, sa.ForeignKey("tenants.id"), nullable=False),
        sa.Column("name", sa.String(128), nullable=False),
        sa.Column("description", sa.Text, nullable=True),
        sa.Column("plan_type", sa.Enum("HOTSPOT", "PPPOE", "STATIC", name="plantype"), nullable=False),
        sa.Column("price", sa.Integer, nullable=False),
        sa.Column("duration_seconds", sa.Integer, nullable=False),
        sa.Column("speed_mbps", sa.Integer, nullable=True),
        sa.Column("upload_limit", sa.String(32), nullable=True),
        sa.Column("download_limit", sa.String(32), nullable=True),
        sa.Column("burst_upload", sa.String(32), nullable=True),
        sa.Column("burst_download", sa.String(32), nullable=True),
        sa.Column("simultaneous_use", sa.Integer, nullable=False, server_default="1"),
        sa.Column("max_devices", sa.Integer, nullable=False, server_default="1"),
        sa.Column("is_active", sa.Boolean, nullable=False, server_default=sa.text("true")),
        sa.Column("sort_order", sa.Integer, nullable=False, server_default="0"),
        *_timestamps(),
    )
    op.create_index("ix_plans_tenant_id", "plans", ["tenant_id"], unique=False)
    op.create_index("ix_plans_tenant_type", "plans", ["tenant_id", "plan_type"], unique=False)

    op.create_table(
        "wifi_users",
        sa.Column("id", sa.Integer, primary_key=True),
        sa.Column("tenant_id", sa.Integer, sa.ForeignKey("tenants.id"), nullable=False),
        sa.Column("phone_number", sa.String(32), nullable=False),
        sa.Column("email", sa.String(255), nullable=True),
        sa.Column("full_name", sa.String(255), nullable=True),
        sa.Column("account_type", sa.Enum("HOTSPOT", "PPPOE", "STATIC", name="accounttype"), nullable=False),
        sa.Column("current_plan_id", sa.Integer, sa.ForeignKey("plans.id"), nullable=True),
        sa.Column("current_hotspot_id", sa.Integer, sa.ForeignKey("hotspots.id"), nullable=True),
        sa.Column("technician_id", sa.Integer, sa.ForeignKey("users.id"), nullable=True),
        sa.Column("expiry_time", sa.DateTime(timezone=True), nullable=True),
        sa.Column("mac_address", sa.String(32), nullable=True),
        sa.Column("ip_address", sa.String(64), nullable=True),
        sa.Column("username", sa.String(64), nullable=True),
        sa.Column("password", sa.String(128), nullable=True),
        sa.Column("status", sa.Enum("ACTIVE", "SUSPENDED", "EXPIRED", name="wifiuserstatus"), nullable=False),
        sa.Column("notes", sa.Text, nullable=True),
        *_timestamps(),
    )
    op.create_index("ix_wifi_users_tenant_id", "wifi_users", ["tenant_id"], unique=False)
    op.create_index("ix_wifi_users_tenant_phone", "wifi_users", ["tenant_id", "phone_number"], unique=False)
    op.create_index("ix_wifi_users_tenant_status", "wifi_users", ["tenant_id", "status"], unique=False)

    op.create_table(
        "transactions",
        sa.Column("id", sa.Integer, primary_key=True),
        sa.Column("tenant_id", sa.Integer, sa.ForeignKey("tenants.id"), nullable=False),
        sa.Column("plan_id", sa.Integer, sa.ForeignKey("plans.id"), nullable=True),
        sa.Column("wifi_user_id", sa.Integer, sa.ForeignKey("wifi_users.id"), nullable=True),
        sa.Column("user_phone", sa.String(20), nullable=False),
        sa.Column("amount", sa.Integer, nullable=False),
        sa.Column("mpesa_receipt_number", sa.String(32), nullable=True),
        sa.Column("checkout_request_id", sa.String(64), nullable=True),
        sa.Column("merchant_request_id", sa.String(64), nullable=True),
        sa.Column("status", sa.Enum("PENDING", "COMPLETED", "FAILED", name="transactionstatus"), nullable=False),
        sa.Column(
            "reconciliation_status",
            sa.Enum("PENDING", "MATCHED", "UNMATCHED", "MANUAL_REVIEW", name="reconciliationstatus"),
            nullable=False,
        ),
        sa.Column("status_description", sa.String(255), nullable=True),
        sa.Column("mac_address", sa.String(32), nullable=True),
        sa.Column("nas_ip", sa.String(64), nullable=True),
        sa.Column("expires_at", sa.DateTime(timezone=True), nullable=True),
        *_timestamps(),
    )
    op.create_index("ix_transactions_tenant_id", "transactions", ["tenant_id"], unique=False)
    op.create_index("ix_transactions_wifi_user_id", "transactions", ["wifi_user_id"], unique=False)
    op.create_index("ix_transactions_mpesa_receipt_number", "transactions", ["mpesa_receipt_number"], unique=False)
    op.create_index("ix_transactions_checkout_request_id", "transactions", ["checkout_request_id"], unique=True)
    op.create_index("ix_transactions_tenant_status", "transactions", ["tenant_id", "status"], unique=False)
    op.create_index(
        "ix_transactions_tenant_reconciliation",
        "transactions",
        ["tenant_id", "reconciliation_status"],
        unique=False,
    )

    op.create_table(
        "tickets",
        sa.Column("id", sa.Integer, primary_key=True),
        sa.Column("tenant_id", sa.Integer, sa.ForeignKey("tenants.id"), nullable=False),
        sa.Column("wifi_user_id", sa.Integer, sa.ForeignKey("wifi_users.id"), nullable=True),
        sa.Column("subject", sa.String(255), nullable=False),
        sa.Column("issue_details", sa.Text, nullable=False),
        sa.Column(
            "status",
            sa.Enum("OPEN", "IN_PROGRESS", "RESOLVED", "CLOSED", name="ticketstatus"),
            nullable=False,
        ),
        sa.Column("priority", sa.Enum("LOW", "MEDIUM", "HIGH", "URGENT", name="ticketpriority"), nullable=False),
        sa.Column("resolution_notes", sa.Text, nullable=True),
        sa.Column("assigned_to", sa.Integer, sa.ForeignKey("users.id"), nullable=True),
        sa.Column("closed_at", sa.DateTime(timezone=True), nullable=True),
        *_timestamps(),
    )
    op.create_index("ix_tickets_tenant_id", "tickets", ["tenant_id"], unique=False)
    op.create_index("ix_tickets_tenant_status", "tickets", ["tenant_id", "status"], unique=False)

    op.create_table(
        "voucher_batches",
        sa.Column("id", sa.Integer, primary_key=True),
        sa.Column("tenant_id", sa.Integer, sa.ForeignKey("tenants.id"), nullable=False),
        sa.Column("plan_id", sa.Integer, sa.ForeignKey("plans.id"), nullable=False),
        sa.Column("name", sa.String(128), nullable=False),
        sa.Column("prefix", sa.String(6), nullable=True),
        sa.Column("quantity", sa.Integer, nullable=False),
        sa.Column("used_count", sa.Integer, nullable=False, server_default="0"),
        sa.Column("valid_from", sa.DateTime(timezone=True), nullable=True),
        sa.Column("valid_until", sa.DateTime(timezone=True), nullable=True),
        sa.Column("created_by", sa.Integer, sa.ForeignKey("users.id"), nullable=True),
        *_timestamps(),
    )
    op.create_index("ix_voucher_batches_tenant_id", "voucher_batches", ["tenant_id"], unique=False)

    op.create_table(
        "vouchers",
        sa.Column("id", sa.Integer, primary_key=True),
        sa.Column("tenant_id", sa.Integer, sa.ForeignKey("tenants.id"), nullable=False),
        sa.Column("batch_id", sa.Integer, sa.ForeignKey("voucher_batches.id"), nullable=False),
        sa.Column("plan_id", sa.Integer, sa.ForeignKey("plans.id"), nullable=False),
        sa.Column("code", sa.String(32), nullable=False),
        sa.Column(
            "status",
            sa.Enum("AVAILABLE", "USED", "EXPIRED", "DISABLED", name="voucherstatus"),
            nullable=False,
        ),
        sa.Column("used_by", sa.Integer, sa.ForeignKey("wifi_users.id"), nullable=True),
        sa.Column("used_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("mac_address", sa.String(32), nullable=True),
        sa.Column("valid_until", sa.DateTime(timezone=True), nullable=True),
        sa.Column("expires_at", sa.DateTime(timezone=True), nullable=True),
        *_timestamps(),
        sa.UniqueConstraint("tenant_id", "code", name="uq_vouchers_tenant_code"),
    )
    op.create_index("ix_vouchers_tenant_id", "vouchers", ["tenant_id"], unique=False)
    op.create_index("ix_vouchers_batch_id", "vouchers", ["batch_id"], unique=False)
    op.create_index("ix_vouchers_batch_status", "vouchers", ["batch_id", "status"], unique=False)

    op.create_table(
        "loyalty_points",
        sa.Column("id", sa.Integer, primary_key=True),
        sa.Column("tenant_id", sa.Integer, sa.ForeignKey("tenants.id"), nullable=False),
        sa.Column("wifi_user_id", sa.Integer, sa.ForeignKey("wifi_users.id"), nullable=False, unique=True),
        sa.Column("points", sa.Integer, nullable=False, server_default="0"),
        sa.Column("total_earned", sa.Integer, nullable=False, server_default="0"),
        sa.Column("total_redeemed", sa.Integer, nullable=False, server_default="0"),
        sa.Column("last_earned_at", sa.DateTime(timezone=True), nullable=True),
        *_timestamps(),
    )
    op.create_index("ix_loyalty_points_tenant_id", "loyalty_points", ["tenant_id"], unique=False)

    op.create_table(
        "loyalty_transactions",
        sa.Column("id", sa.Integer, primary_key=True),
        sa.Column("tenant_id", sa.Integer, sa.ForeignKey("tenants.id"), nullable=False),
        sa.Column("account_id", sa.Integer, sa.ForeignKey("loyalty_points.id"), nullable=False),
        sa.Column("wifi_user_id", sa.Integer, sa.ForeignKey("wifi_users.id"), nullable=False),
        sa.Column("entry_type", sa.Enum("EARN", "REDEEM", name="loyaltyentrytype"), nullable=False),
        sa.Column("points", sa.Integer, nullable=False),
        sa.Column("description", sa.String(255), nullable=True),
        sa.Column("reference_id", sa.String(64), nullable=True),
        *_timestamps(),
    )
    op.create_index("ix_loyalty_transactions_account_id", "loyalty_transactions", ["account_id"], unique=False)
    op.create_index(
        "ix_loyalty_transactions_user",
        "loyalty_transactions",
        ["wifi_user_id", "id"],
        unique=False,
    )

    op.create_table(
        "walled_gardens",
        sa.Column("id", sa.Integer, primary_key=True),
        sa.Column("tenant_id", sa.Integer, sa.ForeignKey("tenants.id"), nullable=False),
        sa.Column("domain", sa.String(255), nullable=False),
        sa.Column("description", sa.String(255), nullable=True),
        sa.Column("is_active", sa.Boolean, nullable=False, server_default=sa.text("true")),
        *_timestamps(),
        sa.UniqueConstraint("tenant_id", "domain", name="uq_walled_gardens_tenant_domain"),
    )
    op.create_index("ix_walled_gardens_tenant_id", "walled_gardens", ["tenant_id"], unique=False)


def downgrade():
    op.drop_table("walled_gardens")
    op.drop_table("loyalty_transactions")
    op.drop_table("loyalty_points")
    op.drop_table("vouchers")
    op.drop_table("voucher_batches")
    op.drop_table("tickets")
    op.drop_table("transactions")
    op.drop_table("wifi_users")
    op.drop_table("plans")
    op.drop_table("hotspots")
    op.drop_table("users")
    op.drop_table("tenants")
    op.execute("DROP TYPE IF EXISTS loyaltyentrytype")
    op.execute("DROP TYPE IF EXISTS voucherstatus")
    op.execute("DROP TYPE IF EXISTS ticketpriority")
    op.execute("DROP TYPE IF EXISTS ticketstatus")
    op.execute("DROP TYPE IF EXISTS reconciliationstatus")
    op.execute("DROP TYPE IF EXISTS transactionstatus")
    op.execute("DROP TYPE IF EXISTS wifiuserstatus")
    op.execute("DROP TYPE IF EXISTS accounttype")
    op.execute("DROP TYPE IF EXISTS plantype")
    op.execute("DROP TYPE IF EXISTS userrole")
    op.execute("DROP TYPE IF EXISTS saasbillingstatus")
    op.execute("DROP TYPE IF EXISTS subscriptiontier")
