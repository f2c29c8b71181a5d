# ==============================
# Control-Plane Operations
# ==============================
"""
Handlers for the database control-plane API.

Rules:
- Pass-through handlers issue exactly one HTTP call and render the JSON body.
- deploy_schema is a batch: one query call per statement, per-statement outcome.
- check_api_key is local-capable: it reports a missing key instead of failing.
- HTTP failures arrive as BackendError from NeonClient and propagate.
"""

from __future__ import annotations

from typing import Any, Dict, List, Mapping

from broker.contracts.operation_schema import CallResponse
from broker.errors import BackendError
from broker.operations.arguments import parse_args
from broker.resources.manager import CredentialResourceManager
from integrations.neon import args as a


Args = Mapping[str, Any]

API_KEY_INSTRUCTIONS = "Get your API key from: https://console.neon.tech/app/settings/api-keys"
STATEMENT_PREVIEW = 100


def _project(project_id: str) -> str:
    return f"/projects/{project_id}"


def _branch(project_id: str, branch_id: str) -> str:
    return f"/projects/{project_id}/branches/{branch_id}"


# ==============================
# Projects
# ==============================
def list_projects(arguments: Args, client: Any) -> CallResponse:
    p = parse_args(a.ListProjectsArgs, arguments)
    body = client.get("/projects", {"limit": p.limit, "search": p.search, "cursor": p.cursor, "org_id": p.org_id})
    return CallResponse.structured(body)


def list_organizations(arguments: Args, client: Any) -> CallResponse:
    p = parse_args(a.ListOrganizationsArgs, arguments)
    orgs = client.get("/users/me/organizations").get("organizations") or []
    if p.search:
        needle = p.search.lower()
        orgs = [
            o for o in orgs
            if needle in str(o.get("name") or "").lower() or needle in str(o.get("id") or "").lower()
        ]
    return CallResponse.structured({"organizations": orgs})


def list_shared_projects(arguments: Args, client: Any) -> CallResponse:
    p = parse_args(a.ListSharedProjectsArgs, arguments)
    return CallResponse.structured(
        client.get("/projects/shared", {"limit": p.limit, "search": p.search, "cursor": p.cursor})
    )


def create_project(arguments: Args, client: Any) -> CallResponse:
    p = parse_args(a.CreateProjectArgs, arguments)
    project = {k: v for k, v in p.model_dump().items() if v is not None}
    body: Dict[str, Any] = {"project": project} if project else {}
    return CallResponse.structured(client.post("/projects", body))


def describe_project(arguments: Args, client: Any) -> CallResponse:
    p = parse_args(a.ProjectArgs, arguments)
    return CallResponse.structured(client.get(_project(p.project_id)))


def update_project(arguments: Args, client: Any) -> CallResponse:
    p = parse_args(a.UpdateProjectArgs, arguments)
    project: Dict[str, Any] = {}
    if p.name:
        project["name"] = p.name
    if p.settings:
        project["settings"] = p.settings
    return CallResponse.structured(client.patch(_project(p.project_id), {"project": project}))


def delete_project(arguments: Args, client: Any) -> CallResponse:
    p = parse_args(a.ProjectArgs, arguments)
    return CallResponse.structured(client.delete(_project(p.project_id)))


def get_project_operations(arguments: Args, client: Any) -> CallResponse:
    p = parse_args(a.ProjectOperationsArgs, arguments)
    return CallResponse.structured(client.get(f"{_project(p.project_id)}/operations", {"limit": p.limit}))


def get_project_consumption(arguments: Args, client: Any) -> CallResponse:
    p = parse_args(a.ConsumptionArgs, arguments)
    return CallResponse.structured(client.get(f"{_project(p.project_id)}/consumption", {"from": p.from_, "to": p.to}))


def set_project_settings(arguments: Args, client: Any) -> CallResponse:
    p = parse_args(a.ProjectSettingsArgs, arguments)
    return CallResponse.structured(client.patch(_project(p.project_id), {"project": {"settings": p.settings}}))


def get_project_quotas(arguments: Args, client: Any) -> CallResponse:
    p = parse_args(a.ProjectArgs, arguments)
    body = client.get(_project(p.project_id))
    return CallResponse.structured((body.get("project") or {}).get("quotas") or {})


# ==============================
# Branches
# ==============================
def create_branch(arguments: Args, client: Any) -> CallResponse:
    p = parse_args(a.CreateBranchArgs, arguments)
    branch: Dict[str, Any] = {}
    if p.branch_name:
        branch["name"] = p.branch_name
    if p.parent_id:
        branch["parent_id"] = p.parent_id
    return CallResponse.structured(client.post(f"{_project(p.project_id)}/branches", {"branch": branch}))


def delete_branch(arguments: Args, client: Any) -> CallResponse:
    p = parse_args(a.BranchArgs, arguments)
    return CallResponse.structured(client.delete(_branch(p.project_id, p.branch_id)))


def describe_branch(arguments: Args, client: Any) -> CallResponse:
    p = parse_args(a.BranchArgs, arguments)
    return CallResponse.structured(client.get(_branch(p.project_id, p.branch_id)))


def list_branches(arguments: Args, client: Any) -> CallResponse:
    p = parse_args(a.ListBranchesArgs, arguments)
    return CallResponse.structured(client.get(f"{_project(p.project_id)}/branches", {"search": p.search}))


def update_branch(arguments: Args, client: Any) -> CallResponse:
    p = parse_args(a.UpdateBranchArgs, arguments)
    branch: Dict[str, Any] = {}
    if p.name:
        branch["name"] = p.name
    if p.protected is not None:
        branch["protected"] = p.protected
    return CallResponse.structured(client.patch(_branch(p.project_id, p.branch_id), {"branch": branch}))


def reset_from_parent(arguments: Args, client: Any) -> CallResponse:
    p = parse_args(a.ResetFromParentArgs, arguments)
    body: Dict[str, Any] = {}
    if p.preserve_under_name:
        body["preserve_under_name"] = p.preserve_under_name
    return CallResponse.structured(client.post(f"{_branch(p.project_id, p.branch_id_or_name)}/reset", body))


def promote_branch(arguments: Args, client: Any) -> CallResponse:
    p = parse_args(a.BranchArgs, arguments)
    return CallResponse.structured(client.post(f"{_branch(p.project_id, p.branch_id)}/set_as_primary", {}))


def set_branch_protection(arguments: Args, client: Any) -> CallResponse:
    p = parse_args(a.BranchProtectionArgs, arguments)
    return CallResponse.structured(
        client.patch(_branch(p.project_id, p.branch_id), {"branch": {"protected": p.protected}})
    )


def restore_branch_to_timestamp(arguments: Args, client: Any) -> CallResponse:
    p = parse_args(a.RestoreToTimestampArgs, arguments)
    return CallResponse.structured(
        client.post(f"{_branch(p.project_id, p.branch_id)}/restore", {"timestamp": p.timestamp})
    )


def get_branch_size(arguments: Args, client: Any) -> CallResponse:
    p = parse_args(a.BranchArgs, arguments)
    body = client.get(_branch(p.project_id, p.branch_id))
    size = (body.get("branch") or {}).get("logical_size") or 0
    return CallResponse.text(f"Branch size: {size} bytes")


def list_branch_computes(arguments: Args, client: Any) -> CallResponse:
    p = parse_args(a.BranchComputesArgs, arguments)
    endpoints = client.get(f"{_project(p.project_id)}/endpoints").get("endpoints") or []
    if p.branch_id:
        endpoints = [e for e in endpoints if e.get("branch_id") == p.branch_id]
    return CallResponse.structured(endpoints)


# ==============================
# Databases
# ==============================
def list_databases(arguments: Args, client: Any) -> CallResponse:
    p = parse_args(a.ListDatabasesArgs, arguments)
    return CallResponse.structured(client.get(f"{_branch(p.project_id, p.branch_id)}/databases"))


def create_database(arguments: Args, client: Any) -> CallResponse:
    p = parse_args(a.CreateDatabaseArgs, arguments)
    body = {"database": {"name": p.database_name, "owner_name": p.owner_name}}
    return CallResponse.structured(client.post(f"{_branch(p.project_id, p.branch_id)}/databases", body))


def delete_database(arguments: Args, client: Any) -> CallResponse:
    p = parse_args(a.DeleteDatabaseArgs, arguments)
    return CallResponse.structured(client.delete(f"{_branch(p.project_id, p.branch_id)}/databases/{p.database_name}"))


# ==============================
# Setup automation
# ==============================
def split_statements(sql: str) -> List[str]:
    return [s.strip() for s in sql.split(";") if s.strip()]


def _preview(statement: str) -> str:
    if len(statement) <= STATEMENT_PREVIEW:
        return statement
    return statement[:STATEMENT_PREVIEW] + "..."


def deploy_schema(arguments: Args, client: Any) -> CallResponse:
    p = parse_args(a.DeploySchemaArgs, arguments)
    results: List[Dict[str, Any]] = []
    for statement in split_statements(p.schema_sql):
        try:
            client.query(p.project_id, p.branch_id, p.database_name, statement + ";")
        except BackendError as e:
            results.append({"success": False, "statement": _preview(statement), "error": str(e)})
            continue
        results.append({"success": True, "statement": _preview(statement)})

    ok = sum(1 for r in results if r["success"])
    return CallResponse.structured(
        {
            "success": ok == len(results),
            "total_statements": len(results),
            "successful": ok,
            "failed": len(results) - ok,
            "results": results,
        }
    )


VERIFY_SQL = (
    "SELECT table_name FROM information_schema.tables "
    "WHERE table_schema = 'public' AND table_type = 'BASE TABLE'"
)


def verify_schema(arguments: Args, client: Any) -> CallResponse:
    p = parse_args(a.VerifySchemaArgs, arguments)
    body = client.query(p.project_id, p.branch_id, p.database_name, VERIFY_SQL)
    existing = [r.get("table_name") for r in (body.get("rows") or [])]
    missing = [t for t in p.required_tables if t not in existing]
    return CallResponse.structured(
        {
            "success": not missing,
            "existing_tables": existing,
            "required_tables": p.required_tables,
            "missing_tables": missing,
            "message": "All required tables exist!" if not missing else f"Missing tables: {', '.join(missing)}",
        }
    )


class ApiKeyCheck:
    """
    Local-capable check: never raises NotConfiguredError.

    Holds the resource manager rather than a handle so it can report the
    unconfigured case itself.
    """

    def __init__(self, resource: CredentialResourceManager, *, not_configured_message: str) -> None:
        self.resource = resource
        self.not_configured_message = not_configured_message

    def __call__(self, arguments: Args, backend: Any) -> CallResponse:
        client = self.resource.client
        if client is None:
            return CallResponse.structured(
                {
                    "enabled": False,
                    "message": self.not_configured_message,
                    "instructions": API_KEY_INSTRUCTIONS,
                }
            )
        try:
            client.get("/projects", {"limit": 1})
        except BackendError as e:
            return CallResponse.structured(
                {
                    "enabled": False,
                    "error": str(e),
                    "message": "Neon API key is configured but invalid. Please check your API key.",
                }
            )
        return CallResponse.structured({"enabled": True, "message": "Neon API key is valid and working!"})
