"""create websites, subscribers, campaigns and notification logs

Revision ID: 4f2a9c1d7e30
Revises:
Create Date: 2026-10-18

"""

from collections.abc import Sequence

import sqlalchemy as sa

from alembic import op

# revision identifiers, used by Alembic.
revision: str = "4f2a9c1d7e30"
down_revision: str | None = None
branch_labels: str | Sequence[str] | None = None
depends_on: str | Sequence[str] | None = None


def _timestamps() -> list[sa.Column]:
    return [
        sa.Column(
            "created_at",
            sa.DateTime(timezone=True),
            nullable=False,
            server_default=sa.func.now(),
        ),
        sa.Column(
            "updated_at",
            sa.DateTime(timezone=True),
            nullable=False,
            server_default=sa.func.now(),
            onupdate=sa.func.now(),
        ),
    ]


def upgrade() -> None:
    op.create_table(
        "websites",
        sa.Column("id", sa.String(64), primary_key=True),
        sa.Column("name", sa.String(255), nullable=False),
        sa.Column("url", sa.String(500), nullable=False),
        sa.Column("vapid_public_key", sa.String(128), nullable=False),
        sa.Column("vapid_private_key", sa.String(128), nullable=False),
        sa.Column("api_token", sa.String(64), nullable=False),
        sa.Column(
            "status",
            sa.Enum("active", "pending", "inactive", name="websitestatus"),
            nullable=False,
            server_default="pending",
        ),
        sa.Column("notifications_sent", sa.Integer(), nullable=False, server_default="0"),
        *_timestamps(),
    )
    op.create_index("ix_websites_api_token", "websites", ["api_token"], unique=True)

    op.create_table(
        "subscribers",
        sa.Column("id", sa.String(36), primary_key=True),
        sa.Column("website_id", sa.String(64), sa.ForeignKey("websites.id"), nullable=False),
        sa.Column("endpoint", sa.String(2048), nullable=True),
        sa.Column("p256dh_key", sa.String(256), nullable=True),
        sa.Column("auth_key", sa.String(128), nullable=True),
        sa.Column("fcm_token", sa.String(512), nullable=True),
        sa.Column("apns_token", sa.String(512), nullable=True),
        sa.Column("browser", sa.String(64), nullable=True),
        sa.Column("browser_version", sa.String(64), nullable=True),
        sa.Column(
            "device_type",
            sa.Enum("desktop", "mobile", "tablet", name="devicetype"),
            nullable=True,
        ),
        sa.Column("os", sa.String(64), nullable=True),
        sa.Column(
            "platform",
            sa.Enum("web", "android", "ios", name="platform"),
            nullable=False,
            server_default="web",
        ),
        sa.Column("language", sa.String(64), nullable=True),
        sa.Column("timezone", sa.String(64), nullable=True),
        sa.Column(
            "status",
            sa.Enum("active", "inactive", "unsubscribed", name="subscriberstatus"),
            nullable=False,
            server_default="active",
        ),
        sa.Column("last_active_at", sa.DateTime(timezone=True), nullable=True),
        *_timestamps(),
        sa.UniqueConstraint("website_id", "endpoint", name="uq_website_endpoint"),
    )
    op.create_index("ix_subscribers_website_id", "subscribers", ["website_id"])
    op.create_index("ix_subscribers_fcm_token", "subscribers", ["fcm_token"])
    op.create_index("ix_subscribers_apns_token", "subscribers", ["apns_token"])
    op.create_index("ix_subscribers_status", "subscribers", ["status"])

    op.create_table(
        "campaigns",
        sa.Column("id", sa.String(36), primary_key=True),
        sa.Column("website_id", sa.String(64), sa.ForeignKey("websites.id"), nullable=False),
        sa.Column("name", sa.String(255), nullable=False),
        sa.Column("title", sa.String(255), nullable=False),
        sa.Column("body", sa.String(1000), nullable=False),
        sa.Column("icon_url", sa.String(2048), nullable=True),
        sa.Column("image_url", sa.String(2048), nullable=True),
        sa.Column("badge_url", sa.String(2048), nullable=True),
        sa.Column("click_url", sa.String(2048), nullable=True),
        sa.Column("actions", sa.JSON(), nullable=True),
        sa.Column(
            "require_interaction", sa.Boolean(), nullable=False, server_default=sa.false()
        ),
        sa.Column(
            "status",
            sa.Enum(
                "draft", "scheduled", "active", "completed", "paused", name="campaignstatus"
            ),
            nullable=False,
            server_default="draft",
        ),
        sa.Column("scheduled_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("sent_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("sent_count", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("delivered_count", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("clicked_count", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("failed_count", sa.Integer(), nullable=False, server_default="0"),
        *_timestamps(),
    )
    op.create_index("ix_campaigns_website_id", "campaigns", ["website_id"])
    op.create_index("ix_campaigns_status", "campaigns", ["status"])
    op.create_index("ix_campaigns_scheduled_at", "campaigns", ["scheduled_at"])

    op.create_table(
        "notification_logs",
        sa.Column("id", sa.String(36), primary_key=True),
        sa.Column("campaign_id", sa.String(36), sa.ForeignKey("campaigns.id"), nullable=True),
        sa.Column(
            "subscriber_id", sa.String(36), sa.ForeignKey("subscribers.id"), nullable=True
        ),
        sa.Column("website_id", sa.String(64), sa.ForeignKey("websites.id"), nullable=False),
        sa.Column(
            "status",
            sa.Enum(
                "pending",
                "sent",
                "delivered",
                "clicked",
                "failed",
                "dismissed",
                name="notificationstatus",
            ),
            nullable=False,
            server_default="pending",
        ),
        sa.Column("platform", sa.String(20), nullable=True),
        sa.Column("error_code", sa.String(64), nullable=True),
        sa.Column("error_message", sa.String(1000), nullable=True),
        sa.Column("retry_count", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("sent_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("delivered_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("clicked_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("dismissed_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("click_action", sa.String(100), nullable=True),
        *_timestamps(),
    )
    op.create_index("ix_notification_logs_campaign_id", "notification_logs", ["campaign_id"])
    op.create_index("ix_notification_logs_subscriber_id", "notification_logs", ["subscriber_id"])
    op.create_index("ix_notification_logs_website_id", "notification_logs", ["website_id"])


def downgrade() -> None:
    op.drop_table("notification_logs")
    op.drop_table("campaigns")
    op.drop_table("subscribers")
    op.drop_table("websites")
    for enum_name in (
        "notificationstatus",
        "campaignstatus",
        "subscriberstatus",
        "platform",
        "devicetype",
        "websitestatus",
    ):
        sa.Enum(name=enum_name).drop(op.get_bind(), checkfirst=True)
