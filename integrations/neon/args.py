# ==============================
# Control-Plane Operation Inputs
# ==============================
"""
Input models for control-plane operations.
"""

from __future__ import annotations

from typing import Any, Dict, List, Optional

from pydantic import Field

from broker.operations.arguments import OperationArgs


DEFAULT_BRANCH = "main"
DEFAULT_DATABASE = "neondb"
DEFAULT_OWNER = "neondb_owner"


# ==============================
# Projects
# ==============================
class ListProjectsArgs(OperationArgs):
    limit: Optional[int] = Field(default=None, gt=0, description="Maximum projects to return")
    search: Optional[str] = Field(default=None, description="Filter by name or id")
    cursor: Optional[str] = Field(default=None, description="Pagination cursor from a previous call")
    org_id: Optional[str] = Field(default=None, description="Organization id")


class ListOrganizationsArgs(OperationArgs):
    search: Optional[str] = Field(default=None, description="Case-insensitive filter on name or id")


class ListSharedProjectsArgs(OperationArgs):
    limit: Optional[int] = Field(default=None, gt=0, description="Maximum projects to return")
    search: Optional[str] = Field(default=None, description="Filter by name or id")
    cursor: Optional[str] = Field(default=None, description="Pagination cursor from a previous call")


class CreateProjectArgs(OperationArgs):
    name: Optional[str] = Field(default=None, description="Project name")
    org_id: Optional[str] = Field(default=None, description="Organization id")
    region_id: Optional[str] = Field(default=None, description="Region, e.g. aws-us-east-1")
    pg_version: Optional[int] = Field(default=None, description="Postgres major version")


class ProjectArgs(OperationArgs):
    project_id: str = Field(..., description="Project id")


class UpdateProjectArgs(ProjectArgs):
    name: Optional[str] = Field(default=None, description="New project name")
    settings: Optional[Dict[str, Any]] = Field(default=None, description="Project settings object")


class ProjectOperationsArgs(ProjectArgs):
    limit: Optional[int] = Field(default=None, gt=0, description="Maximum operations to return")


class ConsumptionArgs(ProjectArgs):
    from_: Optional[str] = Field(default=None, alias="from", description="Start of period (ISO 8601)")
    to: Optional[str] = Field(default=None, description="End of period (ISO 8601)")


class ProjectSettingsArgs(ProjectArgs):
    settings: Dict[str, Any] = Field(..., description="Project settings object")


# ==============================
# Branches
# ==============================
class CreateBranchArgs(ProjectArgs):
    branch_name: Optional[str] = Field(default=None, description="Branch name")
    parent_id: Optional[str] = Field(default=None, description="Parent branch id")


class BranchArgs(ProjectArgs):
    branch_id: str = Field(..., description="Branch id")


class ResetFromParentArgs(ProjectArgs):
    branch_id_or_name: str = Field(..., description="Branch id or name")
    preserve_under_name: Optional[str] = Field(default=None, description="Keep the current state under this name")


class UpdateBranchArgs(BranchArgs):
    name: Optional[str] = Field(default=None, description="New branch name")
    protected: Optional[bool] = Field(default=None, description="Protection flag")


class ListBranchesArgs(ProjectArgs):
    search: Optional[str] = Field(default=None, description="Filter by name or id")


class BranchProtectionArgs(BranchArgs):
    protected: bool = Field(..., description="Protection flag")


class RestoreToTimestampArgs(BranchArgs):
    timestamp: str = Field(..., description="Point in time (ISO 8601)")


class BranchComputesArgs(ProjectArgs):
    branch_id: Optional[str] = Field(default=None, description="Only endpoints of this branch")


# ==============================
# Databases
# ==============================
class ListDatabasesArgs(ProjectArgs):
    branch_id: str = Field(default=DEFAULT_BRANCH, description="Branch id")


class CreateDatabaseArgs(ListDatabasesArgs):
    database_name: str = Field(..., description="Database name")
    owner_name: str = Field(default=DEFAULT_OWNER, description="Owning role")


class DeleteDatabaseArgs(ListDatabasesArgs):
    database_name: str = Field(..., description="Database name")


# ==============================
# Setup automation
# ==============================
class SchemaTargetArgs(ProjectArgs):
    branch_id: str = Field(default=DEFAULT_BRANCH, description="Branch id")
    database_name: str = Field(default=DEFAULT_DATABASE, description="Database name")


class DeploySchemaArgs(SchemaTargetArgs):
    schema_sql: str = Field(..., description="SQL statements separated by ';'")


class VerifySchemaArgs(SchemaTargetArgs):
    required_tables: List[str] = Field(..., description="Tables that must exist in schema public")


class SqlArgs(SchemaTargetArgs):
    sql: str = Field(..., description="SQL statement")
