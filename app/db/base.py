# Copyright (c) 2025 Alexandre Tavares
# Licensed under the Creative Commons Attribution-NonCommercial 4.0 International (CC BY-NC 4.0)
# See the LICENSE file in the project root for more information.
from sqlalchemy import (
    JSON,
    Boolean,
    Column,
    DateTime,
    ForeignKey,
    Index,
    Integer,
    MetaData,
    String,
    Table,
    Text,
    UniqueConstraint,
)

"""
Schema relacional do DocuFlow (SQLAlchemy Core).


- Um único `metadata` com todas as tabelas (usuários, wiki, CRM, times, time-tracking).
- IDs são UUID em texto e timestamps são gerados na aplicação (UTC, tz-aware).
- Usado por `init_models()` (create_all) e pelos testes; as queries seguem em `text()`.
"""

metadata = MetaData()


def _id() -> Column:
    return Column("id", String(36), primary_key=True)


def _timestamps() -> list[Column]:
    return [
        Column("created_at", DateTime(timezone=True), nullable=False),
        Column("updated_at", DateTime(timezone=True), nullable=False),
    ]


users = Table(
    "users", metadata,
    _id(),
    Column("email", String(255), nullable=False, unique=True),
    Column("password", String(255), nullable=False),
    Column("first_name", String(255)),
    Column("last_name", String(255)),
    Column("profile_image_url", String(1000)),
    Column("role", String(20), nullable=False, default="user"),
    Column("hours_per_day", Integer, nullable=False, default=8),
    *_timestamps(),
)

projects = Table(
    "projects", metadata,
    _id(),
    Column("name", String(255), nullable=False),
    Column("description", Text),
    Column("icon", String(50)),
    Column("owner_id", String(36), ForeignKey("users.id", ondelete="CASCADE"), nullable=False),
    *_timestamps(),
)

documents = Table(
    "documents", metadata,
    _id(),
    Column("title", String(500), nullable=False, default="Untitled"),
    Column("content", JSON),
    Column("icon", String(50)),
    Column("cover_image", String(1000)),
    Column("project_id", String(36), ForeignKey("projects.id", ondelete="CASCADE"), nullable=False),
    Column("parent_id", String(36)),
    Column("position", Integer, nullable=False, default=0),
    Column("created_by_id", String(36), ForeignKey("users.id", ondelete="SET NULL")),
    *_timestamps(),
    Index("idx_document_project", "project_id"),
    Index("idx_document_parent", "parent_id"),
)

crm_clients = Table(
    "crm_clients", metadata,
    _id(),
    Column("name", String(255), nullable=False),
    Column("company", String(255)),
    Column("email", String(255)),
    Column("phone", String(50)),
    Column("phone_format", String(20), default="us"),
    Column("notes", Text),
    Column("status", String(50), nullable=False, default="lead"),
    Column("source", String(50)),
    Column("owner_id", String(36), ForeignKey("users.id", ondelete="CASCADE"), nullable=False),
    *_timestamps(),
    Index("idx_crm_clients_owner", "owner_id"),
)

crm_contacts = Table(
    "crm_contacts", metadata,
    _id(),
    Column("client_id", String(36), ForeignKey("crm_clients.id", ondelete="CASCADE"), nullable=False),
    Column("name", String(255), nullable=False),
    Column("role", String(100)),
    Column("email", String(255)),
    Column("phone", String(50)),
    Column("is_primary", Boolean, nullable=False, default=False),
    *_timestamps(),
    Index("idx_crm_contacts_client", "client_id"),
)

crm_projects = Table(
    "crm_projects", metadata,
    _id(),
    Column("project_id", String(36), ForeignKey("projects.id", ondelete="CASCADE"), nullable=False),
    Column("client_id", String(36), ForeignKey("crm_clients.id", ondelete="SET NULL")),
    Column("status", String(50), nullable=False, default="lead"),
    Column("project_type", String(50), default="one_time"),
    Column("assignee_id", String(36), ForeignKey("users.id", ondelete="SET NULL")),
    Column("start_date", DateTime(timezone=True)),
    Column("due_date", DateTime(timezone=True)),
    Column("actual_finish_date", DateTime(timezone=True)),
    Column("comments", Text),
    Column("budgeted_hours", Integer),
    Column("actual_hours", Integer),
    Column("documentation_enabled", Boolean, nullable=False, default=False),
    Column("is_documentation_only", Boolean, nullable=False, default=False),
    *_timestamps(),
    Index("idx_crm_projects_project", "project_id"),
    Index("idx_crm_projects_status", "status"),
)

crm_project_stage_history = Table(
    "crm_project_stage_history", metadata,
    _id(),
    Column("crm_project_id", String(36), ForeignKey("crm_projects.id", ondelete="CASCADE"), nullable=False),
    Column("from_status", String(50)),
    Column("to_status", String(50), nullable=False),
    Column("changed_by_id", String(36), ForeignKey("users.id", ondelete="CASCADE"), nullable=False),
    Column("changed_at", DateTime(timezone=True), nullable=False),
)

crm_project_notes = Table(
    "crm_project_notes", metadata,
    _id(),
    Column("crm_project_id", String(36), ForeignKey("crm_projects.id", ondelete="CASCADE"), nullable=False),
    Column("content", Text, nullable=False),
    Column("created_by_id", String(36), ForeignKey("users.id", ondelete="CASCADE"), nullable=False),
    Column("mentioned_user_ids", JSON),
    *_timestamps(),
    Index("idx_crm_project_notes_project", "crm_project_id"),
)

crm_tags = Table(
    "crm_tags", metadata,
    _id(),
    Column("name", String(100), nullable=False, unique=True),
    Column("color", String(7), nullable=False),
    *_timestamps(),
)

crm_project_tags = Table(
    "crm_project_tags", metadata,
    _id(),
    Column("crm_project_id", String(36), ForeignKey("crm_projects.id", ondelete="CASCADE"), nullable=False),
    Column("tag_id", String(36), ForeignKey("crm_tags.id", ondelete="CASCADE"), nullable=False),
    UniqueConstraint("crm_project_id", "tag_id", name="uq_crm_project_tag"),
)

notifications = Table(
    "notifications", metadata,
    _id(),
    Column("user_id", String(36), ForeignKey("users.id", ondelete="CASCADE"), nullable=False),
    Column("type", String(50), nullable=False, default="mention"),
    Column("note_id", String(36), ForeignKey("crm_project_notes.id", ondelete="CASCADE")),
    Column("crm_project_id", String(36), ForeignKey("crm_projects.id", ondelete="CASCADE")),
    Column("from_user_id", String(36), ForeignKey("users.id", ondelete="SET NULL")),
    Column("message", Text),
    Column("is_read", Boolean, nullable=False, default=False),
    Column("created_at", DateTime(timezone=True), nullable=False),
    Index("idx_notifications_unread", "user_id", "is_read"),
)

teams = Table(
    "teams", metadata,
    _id(),
    Column("name", String(255), nullable=False),
    Column("description", Text),
    Column("owner_id", String(36), ForeignKey("users.id", ondelete="CASCADE"), nullable=False),
    *_timestamps(),
)

team_members = Table(
    "team_members", metadata,
    _id(),
    Column("team_id", String(36), ForeignKey("teams.id", ondelete="CASCADE"), nullable=False),
    Column("user_id", String(36), ForeignKey("users.id", ondelete="CASCADE"), nullable=False),
    Column("role", String(20), nullable=False, default="member"),
    Column("joined_at", DateTime(timezone=True), nullable=False),
    UniqueConstraint("team_id", "user_id", name="uq_team_member"),
)

team_invites = Table(
    "team_invites", metadata,
    _id(),
    Column("team_id", String(36), ForeignKey("teams.id", ondelete="CASCADE"), nullable=False),
    Column("code", String(64), nullable=False, unique=True),
    Column("created_by_id", String(36), ForeignKey("users.id", ondelete="CASCADE"), nullable=False),
    Column("expires_at", DateTime(timezone=True)),
    Column("max_uses", Integer),
    Column("use_count", Integer, nullable=False, default=0),
    Column("is_active", Boolean, nullable=False, default=True),
    Column("created_at", DateTime(timezone=True), nullable=False),
)

time_entries = Table(
    "time_entries", metadata,
    _id(),
    Column("user_id", String(36), ForeignKey("users.id", ondelete="CASCADE"), nullable=False),
    Column("crm_project_id", String(36), ForeignKey("crm_projects.id", ondelete="CASCADE"), nullable=False),
    Column("description", Text),
    Column("start_time", DateTime(timezone=True), nullable=False),
    Column("end_time", DateTime(timezone=True)),
    Column("status", String(20), nullable=False, default="running"),
    Column("duration", Integer, nullable=False, default=0),
    Column("idle_time", Integer, nullable=False, default=0),
    Column("last_activity_at", DateTime(timezone=True)),
    *_timestamps(),
    Index("idx_time_entries_user_status", "user_id", "status"),
)

time_entry_screenshots = Table(
    "time_entry_screenshots", metadata,
    _id(),
    Column("time_entry_id", String(36), ForeignKey("time_entries.id", ondelete="CASCADE"), nullable=False),
    Column("user_id", String(36), ForeignKey("users.id", ondelete="CASCADE"), nullable=False),
    Column("crm_project_id", String(36), ForeignKey("crm_projects.id", ondelete="CASCADE"), nullable=False),
    Column("storage_key", String(1000), nullable=False),
    Column("file_path", String(1000)),
    Column("content_type", String(100)),
    Column("size_bytes", Integer),
    Column("captured_at", DateTime(timezone=True), nullable=False),
    Column("created_at", DateTime(timezone=True), nullable=False),
    Index("idx_screenshots_entry", "time_entry_id"),
)
