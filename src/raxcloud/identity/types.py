"""Identity service response types.

Pydantic models for the body returned by ``POST /tokens``. Field aliases
follow the wire names; absent optional fields default to empty values and
unknown fields are ignored.
"""

from pydantic import BaseModel, ConfigDict, Field

from ..errors import EndpointNotFoundError


class _WireModel(BaseModel):
    model_config = ConfigDict(populate_by_name=True, extra="ignore")


class Tenant(_WireModel):
    """Tenant (account scope) the token was issued for."""

    id: str = ""
    name: str = ""


class Token(_WireModel):
    """Bearer token with its raw expiry timestamp string."""

    id: str
    expires: str
    tenant: Tenant | None = None


class EntryEndpoint(_WireModel):
    """How to reach one service in one region."""

    region: str = ""
    tenant_id: str = Field("", alias="tenantId")
    public_url: str = Field("", alias="publicURL")
    internal_url: str = Field("", alias="internalURL")
    version_id: str = Field("", alias="versionId")
    version_info: str = Field("", alias="versionInfo")
    version_list: str = Field("", alias="versionList")


class CatalogEntry(_WireModel):
    """Service catalog record: a named, typed service and its endpoints."""

    name: str = ""
    type: str = ""
    endpoints: list[EntryEndpoint] = Field(default_factory=list)


class Role(_WireModel):
    id: str = ""
    name: str = ""
    description: str = ""


class User(_WireModel):
    """Authenticated user and the roles granted to it."""

    id: str = ""
    name: str = ""
    default_region: str = Field("", alias="RAX-AUTH:defaultRegion")
    roles: list[Role] = Field(default_factory=list)


class Access(_WireModel):
    """Token, service catalog and user returned by a successful login."""

    token: Token
    service_catalog: list[CatalogEntry] = Field(
        default_factory=list,
        alias="serviceCatalog",
    )
    user: User = Field(default_factory=User)

    def endpoint_for(
        self,
        service_type: str,
        region: str | None = None,
        name: str | None = None,
    ) -> EntryEndpoint:
        """Find the catalog endpoint serving a service type in a region.

        Region names are compared case-insensitively. Entries without a
        region (legacy, region-less services) never match.

        Args:
            service_type: Catalog type, e.g. "compute" or "rax:monitor".
            region: Region name such as "DFW"; defaults to the user's
                default region.
            name: Optional catalog entry name to narrow the search.

        Returns:
            The first matching endpoint.

        Raises:
            EndpointNotFoundError: If no entry offers the type in the region.
        """
        wanted = (region or self.user.default_region).upper()
        for entry in self.service_catalog:
            if entry.type != service_type:
                continue
            if name is not None and entry.name != name:
                continue
            for endpoint in entry.endpoints:
                if endpoint.region and endpoint.region.upper() == wanted:
                    return endpoint

        msg = f"no {service_type} endpoint in region {wanted or '<none>'}"
        raise EndpointNotFoundError(msg)


class AuthResponse(_WireModel):
    """Top-level ``POST /tokens`` response body."""

    access: Access
