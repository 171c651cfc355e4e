"""CRM listing exports."""

from .pipeline import (  # noqa: F401
    CrmFilter,
    CrmListingService,
    CrmListQuery,
    CrmRow,
    apply_filters,
    paginate,
    sort_rows,
)
