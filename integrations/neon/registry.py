# ==============================
# Control-Plane Integration (Registration Entrypoint)
# ==============================
"""
integrations/neon/registry.py

Canonical registration entrypoint for the database control-plane integration.

Rules:
- Keep this module side-effect safe:
  - No network calls
  - No env reads (the API key arrives through Settings)
- build_resource() creates a CredentialResourceManager: ready when a key is
  configured, permanently unconfigured otherwise.
- Placeholders never name a backend; they answer even without a key.
"""

from __future__ import annotations

from typing import Callable, List, Tuple, Type

from pydantic import BaseModel

from broker.app import IntegrationRegistrations
from broker.config.schema import Settings
from broker.operations.arguments import NoArgs
from broker.resources.manager import CredentialResourceManager
from integrations.neon import args as a
from integrations.neon import operations as ops
from integrations.neon.client import NeonClient


BACKEND = "neon"

NOT_CONFIGURED_MESSAGE = "Neon API key not configured. Set NEON_API_KEY environment variable."
CHECK_NOT_CONFIGURED_MESSAGE = (
    "Neon API key not configured. Set NEON_API_KEY environment variable to enable Neon tools."
)


def build_resource(settings: Settings) -> CredentialResourceManager:
    client = None
    if settings.neon.api_key:
        client = NeonClient(
            api_key=settings.neon.api_key,
            base_url=settings.neon.base_url,
            timeout=settings.neon.timeout_seconds,
        )
    return CredentialResourceManager(
        name=BACKEND,
        client=client,
        setting="NEON_API_KEY",
        not_configured_message=NOT_CONFIGURED_MESSAGE,
    )


_OPERATIONS: List[Tuple[str, str, Callable, Type[BaseModel]]] = [
    # projects
    ("list_projects", "List projects", ops.list_projects, a.ListProjectsArgs),
    ("list_organizations", "List organizations of the current user", ops.list_organizations, a.ListOrganizationsArgs),
    ("list_shared_projects", "List projects shared with the current user", ops.list_shared_projects, a.ListSharedProjectsArgs),
    ("create_project", "Create a project", ops.create_project, a.CreateProjectArgs),
    ("describe_project", "Describe a project", ops.describe_project, a.ProjectArgs),
    ("update_project", "Update a project's name or settings", ops.update_project, a.UpdateProjectArgs),
    ("delete_project", "Delete a project", ops.delete_project, a.ProjectArgs),
    ("get_project_operations", "List recent operations of a project", ops.get_project_operations, a.ProjectOperationsArgs),
    ("get_project_consumption", "Consumption metrics for a project", ops.get_project_consumption, a.ConsumptionArgs),
    ("set_project_settings", "Replace a project's settings", ops.set_project_settings, a.ProjectSettingsArgs),
    ("get_project_quotas", "Quotas configured on a project", ops.get_project_quotas, a.ProjectArgs),
    # branches
    ("create_branch", "Create a branch", ops.create_branch, a.CreateBranchArgs),
    ("delete_branch", "Delete a branch", ops.delete_branch, a.BranchArgs),
    ("describe_branch", "Describe a branch", ops.describe_branch, a.BranchArgs),
    ("list_branches", "List branches of a project", ops.list_branches, a.ListBranchesArgs),
    ("update_branch", "Rename or (un)protect a branch", ops.update_branch, a.UpdateBranchArgs),
    ("reset_from_parent", "Reset a branch to its parent's state", ops.reset_from_parent, a.ResetFromParentArgs),
    ("promote_branch", "Make a branch the project's primary branch", ops.promote_branch, a.BranchArgs),
    ("set_branch_protection", "Set a branch's protection flag", ops.set_branch_protection, a.BranchProtectionArgs),
    ("restore_branch_to_timestamp", "Restore a branch to a point in time", ops.restore_branch_to_timestamp, a.RestoreToTimestampArgs),
    ("get_branch_size", "Logical size of a branch", ops.get_branch_size, a.BranchArgs),
    ("list_branch_computes", "List compute endpoints, optionally for one branch", ops.list_branch_computes, a.BranchComputesArgs),
    # databases
    ("list_databases", "List databases on a branch", ops.list_databases, a.ListDatabasesArgs),
    ("create_database", "Create a database on a branch", ops.create_database, a.CreateDatabaseArgs),
    ("delete_database", "Delete a database from a branch", ops.delete_database, a.DeleteDatabaseArgs),
    # setup automation
    ("deploy_schema", "Run SQL statements one by one and report each outcome", ops.deploy_schema, a.DeploySchemaArgs),
    ("verify_schema", "Check that required tables exist", ops.verify_schema, a.VerifySchemaArgs),
]

# (name, description, fixed message, input model advertised for discovery)
_PLACEHOLDERS: List[Tuple[str, str, str, Type[BaseModel]]] = [
    ("clone_project", "Clone a project",
     "Project cloning: Create new project and copy branches using create_project and create_branch tools.", a.ProjectArgs),
    ("get_project_permissions", "Project access permissions",
     "Project permissions: Use organization API to manage project access.", a.ProjectArgs),
    ("restore_branch", "Restore a branch",
     "Branch restore: Use create_branch with parent_id, or restore_branch_to_timestamp, to restore to a specific point in time.",
     a.BranchArgs),
    ("get_branch_schema_diff", "Schema differences between branches",
     "Schema diff: Use verify_schema on both branches and compare.", a.BranchArgs),
    ("get_branch_data_diff", "Data differences between branches",
     "Data diff: Not yet implemented", a.BranchArgs),
    ("merge_branches", "Merge one branch into another",
     "Branch merge: Use deploy_schema to apply changes from source to target branch.", a.BranchArgs),
    ("run_sql", "Run a SQL statement", "SQL execution: Not yet implemented", a.SqlArgs),
    ("explain_sql_statement", "Explain a SQL statement", "Explain SQL: Not yet implemented", a.SqlArgs),
]


def register(registrations: IntegrationRegistrations) -> None:
    catalog = registrations.catalog
    resource = registrations.resources.get(BACKEND)

    for name, description, handler, model in _OPERATIONS:
        catalog.add(name=name, description=description, handler=handler, args_model=model, backend=BACKEND)

    # local-capable: answers without a key
    catalog.add(
        name="check_api_key",
        description="Check whether an API key is configured and accepted",
        handler=ops.ApiKeyCheck(resource, not_configured_message=CHECK_NOT_CONFIGURED_MESSAGE),
        args_model=NoArgs,
        backend=None,
    )

    for name, description, message, model in _PLACEHOLDERS:
        catalog.add_placeholder(name=name, description=description, message=message, args_model=model)
