from dataclasses import dataclass, field
from typing import Any, Mapping


@dataclass(frozen=True)
class OrgAssets:
    """
    Read-only reference data for the org a batch belongs to.

    The commit pipeline threads this through every handler and hook call
    without interpreting it.
    """

    org_id: int
    reference: Mapping[str, Any] = field(default_factory=dict)
