"""Registry of the portal resources the client knows how to sync.

Each `ResourceSpec` is data, not code: paths, envelope keys, searchable and
filterable fields, default ordering and polling cadence. Adding a resource
means adding an entry here, not a new page class.
"""

from __future__ import annotations

from datetime import date

from pydantic import BaseModel, Field
from pydantic.config import ConfigDict

from core.domain.models import FilterState, SortDirection, SortState


class ResourceSpec(BaseModel):
    model_config = ConfigDict(frozen=True)

    name: str = Field(..., min_length=1, description="CLI name of the resource.")
    title: str = Field(..., min_length=1, description="Human readable label.")
    path: str = Field(..., pattern=r"^/api/", description="Collection endpoint.")
    list_key: str = Field(default="data", description="Envelope key holding the list.")
    item_key: str = Field(default="data", description="Envelope key holding a single entity.")
    envelope: bool = Field(default=True, description="False when the endpoint returns bare JSON.")

    search_fields: tuple[str, ...] = ("name",)
    filter_fields: tuple[str, ...] = ()
    date_field: str | None = None
    default_sort: SortState = SortState(key="name")
    sort_aliases: dict[str, str] = Field(default_factory=dict)
    columns: tuple[str, ...] = ("id", "name")

    poll_interval_seconds: float | None = Field(default=None, gt=0)
    stats_path: str | None = None
    bulk_delete_path: str | None = None
    bulk_update_path: str | None = None
    export_path: str | None = None
    import_path: str | None = None
    export_filename: str = "export.csv"

    days_until_field: str | None = Field(
        default=None,
        description="Date field whose distance from today is stored as `daysUntil`.",
    )
    workload_enrichment: bool = Field(
        default=False,
        description="Annotate workload level/percentage from `stats_path` summary.",
    )

    server_filters: bool = Field(
        default=False,
        description="Send categorical filters as query params; changing them reloads.",
    )
    mutations_patch: bool = Field(
        default=False,
        description="Patch the cache with the returned entity instead of reloading.",
    )

    def item_path(self, entity_id: str) -> str:
        return f"{self.path.rstrip('/')}/{entity_id}"

    def filter_state(
        self,
        *,
        search: str = "",
        equals: dict[str, str] | None = None,
        date_from: date | None = None,
        date_to: date | None = None,
    ) -> FilterState:
        return FilterState(
            search=search,
            search_fields=self.search_fields,
            equals=dict(equals or {}),
            date_field=self.date_field,
            date_from=date_from,
            date_to=date_to,
        )


_RESOURCES: tuple[ResourceSpec, ...] = (
    ResourceSpec(
        name="specializations",
        title="Legal Specializations",
        path="/api/specializations",
        search_fields=("name", "description"),
        filter_fields=("category",),
        sort_aliases={"lawyerCount": "activeLawyerCount"},
        columns=("id", "name", "category", "lawyerCount", "activeLawyerCount"),
        stats_path="/api/specializations/stats",
        bulk_delete_path="/api/specializations/bulk-delete",
        export_path="/api/specializations/export",
        import_path="/api/specializations/import",
        export_filename="specializations.csv",
    ),
    ResourceSpec(
        name="lawyers",
        title="Lawyers",
        path="/api/lawyers",
        search_fields=("fullName", "email"),
        filter_fields=("status", "lawyerProfile.office.name"),
        default_sort=SortState(key="fullName"),
        columns=("id", "fullName", "email", "status"),
        export_path="/api/lawyers/reports/export",
        export_filename="lawyers.csv",
    ),
    ResourceSpec(
        name="lawyer-workload",
        title="Lawyer Workload",
        path="/api/lawyers",
        search_fields=("fullName", "email"),
        filter_fields=("lawyerProfile.office.name", "workloadLevel"),
        default_sort=SortState(key="caseLoad", direction=SortDirection.DESC),
        sort_aliases={"caseLoad": "lawyerProfile.caseLoad", "rating": "lawyerProfile.rating"},
        columns=("id", "fullName", "workloadLevel", "workloadPercentage"),
        stats_path="/api/lawyers/workload/stats",
        workload_enrichment=True,
    ),
    ResourceSpec(
        name="coordinators",
        title="Coordinators",
        path="/api/admin/coordinators",
        search_fields=("user.fullName", "user.email"),
        filter_fields=("status", "type"),
        default_sort=SortState(key="createdAt", direction=SortDirection.DESC),
        date_field="createdAt",
        columns=("id", "user.fullName", "type", "status"),
    ),
    ResourceSpec(
        name="cases",
        title="Cases",
        path="/api/coordinator/cases",
        list_key="cases",
        search_fields=("title", "client.fullName"),
        filter_fields=("status", "priority", "category"),
        date_field="createdAt",
        default_sort=SortState(key="createdAt", direction=SortDirection.DESC),
        columns=("id", "title", "status", "priority", "createdAt"),
    ),
    ResourceSpec(
        name="appointments",
        title="Appointments",
        path="/api/client/appointments",
        search_fields=("purpose", "coordinator.user.fullName"),
        filter_fields=("status",),
        date_field="scheduledTime",
        default_sort=SortState(key="scheduledTime"),
        columns=("id", "purpose", "status", "scheduledTime", "daysUntil"),
        days_until_field="scheduledTime",
        poll_interval_seconds=300,
    ),
    ResourceSpec(
        name="documents",
        title="Documents",
        path="/api/admin/documents",
        search_fields=("title", "uploadedBy.fullName"),
        filter_fields=("status", "type"),
        date_field="uploadedAt",
        default_sort=SortState(key="uploadedAt", direction=SortDirection.DESC),
        columns=("id", "title", "type", "status", "uploadedAt"),
    ),
    ResourceSpec(
        name="notifications",
        title="Notifications",
        path="/api/admin/header/notifications",
        search_fields=("title", "message"),
        filter_fields=("status", "type"),
        date_field="createdAt",
        default_sort=SortState(key="createdAt", direction=SortDirection.DESC),
        columns=("id", "title", "type", "status", "createdAt"),
        poll_interval_seconds=30,
    ),
    ResourceSpec(
        name="backups",
        title="System Backups",
        path="/api/admin/backups",
        search_fields=("name",),
        filter_fields=("status", "type"),
        date_field="createdAt",
        default_sort=SortState(key="createdAt", direction=SortDirection.DESC),
        columns=("id", "name", "type", "status", "createdAt", "daysUntil"),
        days_until_field="expiresAt",
        poll_interval_seconds=30,
    ),
    ResourceSpec(
        name="service-requests",
        title="Service Requests",
        path="/api/services/payment-requests",
        search_fields=("title", "client.fullName"),
        filter_fields=("paymentStatus", "category", "region"),
        date_field="createdAt",
        default_sort=SortState(key="createdAt", direction=SortDirection.DESC),
        columns=("id", "title", "paymentStatus", "category", "createdAt"),
        bulk_update_path="/api/services/payment-requests/bulk-update",
        server_filters=True,
        export_path="/api/services/payment-requests/export?format=csv",
        export_filename="payment-requests.csv",
    ),
    ResourceSpec(
        name="roles",
        title="Access Roles",
        path="/api/admin/access/roles",
        list_key="roles",
        item_key="role",
        search_fields=("name", "description"),
        columns=("id", "name", "description"),
    ),
)

RESOURCES: dict[str, ResourceSpec] = {spec.name: spec for spec in _RESOURCES}


def get_resource(name: str) -> ResourceSpec:
    try:
        return RESOURCES[name]
    except KeyError:
        known = ", ".join(sorted(RESOURCES))
        raise KeyError(f"unknown resource {name!r} (known: {known})") from None
