"""AppDeployment custom resource models.

``AppDeployment.from_resource`` is the single place where the raw resource
dictionary returned by the Kubernetes API is turned into typed data; the
rest of the operator works with these models only.
"""

from __future__ import annotations

from datetime import datetime, timezone
from typing import Any

from pydantic import (
    BaseModel,
    ConfigDict,
    Field,
    field_serializer,
    field_validator,
)
from pydantic.alias_generators import to_camel

from appstore_operator.constants.defaults import (
    API_GROUP,
    API_VERSION,
    DEFAULT_VALUES_KEY,
    FINALIZER_NAME,
    RESOURCE_KIND,
)
from appstore_operator.constants.enums import (
    ConditionType,
    DeploymentPhase,
    ValuesSourceKind,
)


def utcnow() -> datetime:
    """Current UTC time truncated to seconds, as Kubernetes stores it."""
    return datetime.now(timezone.utc).replace(microsecond=0)


class _ResourceModel(BaseModel):
    """Base for models that round-trip through camelCase resource JSON."""

    model_config = ConfigDict(populate_by_name=True, alias_generator=to_camel)


class ValuesReference(_ResourceModel):
    """Reference to a ConfigMap or Secret key holding Helm values."""

    kind: ValuesSourceKind
    name: str = Field(min_length=1)
    values_key: str = DEFAULT_VALUES_KEY
    optional: bool = False


class AppDeploymentSpec(_ResourceModel):
    """Desired state, controlled by the requesting team."""

    app_name: str = Field(min_length=1)
    chart_version: str = ""
    team_id: str = ""
    requested_by: str = ""
    release_name: str = ""
    values: dict[str, Any] | None = None
    values_from: list[ValuesReference] = Field(default_factory=list)
    auto_upgrade: bool = False
    suspend: bool = False


class Condition(_ResourceModel):
    """Status condition (metav1.Condition shape)."""

    type: str
    status: bool
    reason: str
    message: str
    last_transition_time: datetime | None = None

    @field_validator("status", mode="before")
    @classmethod
    def _parse_status(cls, value: Any) -> Any:
        if isinstance(value, str):
            return value == "True"
        return value

    @field_serializer("status")
    def _serialize_status(self, value: bool) -> str:
        return "True" if value else "False"


class AppDeploymentStatus(_ResourceModel):
    """Observed state, written only by the reconciler."""

    phase: DeploymentPhase | None = None
    helm_release_name: str = ""
    helm_release_revision: int = 0
    deployed_chart_version: str = ""
    last_attempted_chart_version: str = ""
    last_applied_values_hash: str = ""
    conditions: list[Condition] = Field(default_factory=list)
    last_reconcile_time: datetime | None = None
    observed_generation: int = 0
    failure_count: int = 0
    message: str = ""

    def get_condition(self, condition_type: ConditionType | str) -> Condition | None:
        """Return the condition of the given type, if present."""
        wanted = str(getattr(condition_type, "value", condition_type))
        for condition in self.conditions:
            if condition.type == wanted:
                return condition
        return None

    def set_condition(
        self,
        condition_type: ConditionType,
        status: bool,
        reason: str,
        message: str,
    ) -> None:
        """Upsert a condition keyed by type.

        The transition time only moves when the boolean status flips.
        """
        existing = self.get_condition(condition_type)
        if existing is None:
            self.conditions.append(
                Condition(
                    type=condition_type.value,
                    status=status,
                    reason=reason,
                    message=message,
                    last_transition_time=utcnow(),
                )
            )
            return
        if existing.status != status:
            existing.last_transition_time = utcnow()
        existing.status = status
        existing.reason = reason
        existing.message = message


class ObjectMeta(_ResourceModel):
    """Subset of Kubernetes object metadata the operator reads and writes.

    Unknown fields (ownerReferences, managedFields, ...) are kept so a
    read-modify-write does not drop them.
    """

    model_config = ConfigDict(
        populate_by_name=True, alias_generator=to_camel, extra="allow"
    )

    name: str
    namespace: str = "default"
    generation: int = 0
    resource_version: str | None = None
    uid: str | None = None
    labels: dict[str, str] = Field(default_factory=dict)
    annotations: dict[str, str] = Field(default_factory=dict)
    finalizers: list[str] = Field(default_factory=list)
    creation_timestamp: datetime | None = None
    deletion_timestamp: datetime | None = None


class AppDeployment(_ResourceModel):
    """The AppDeployment desired-state record."""

    api_version: str = f"{API_GROUP}/{API_VERSION}"
    kind: str = RESOURCE_KIND
    metadata: ObjectMeta
    spec: AppDeploymentSpec
    status: AppDeploymentStatus = Field(default_factory=AppDeploymentStatus)

    @classmethod
    def from_resource(cls, resource: dict[str, Any]) -> AppDeployment:
        """Build a record from a raw Kubernetes resource dictionary."""
        return cls.model_validate(resource)

    def to_resource(self, include_status: bool = True) -> dict[str, Any]:
        """Serialize to the camelCase dictionary the Kubernetes API expects."""
        exclude = None if include_status else {"status"}
        body = self.model_dump(
            mode="json",
            by_alias=True,
            exclude_none=True,
            exclude_defaults=True,
            exclude=exclude,
        )
        body["apiVersion"] = self.api_version
        body["kind"] = self.kind
        if include_status:
            body.setdefault("status", {})
        return body

    @property
    def name(self) -> str:
        return self.metadata.name

    @property
    def namespace(self) -> str:
        return self.metadata.namespace

    @property
    def key(self) -> tuple[str, str]:
        """(namespace, name) identity of the record."""
        return self.metadata.namespace, self.metadata.name

    @property
    def is_being_deleted(self) -> bool:
        return self.metadata.deletion_timestamp is not None

    @property
    def resolved_release_name(self) -> str:
        """Helm release name: explicit spec value, else the record name."""
        return self.spec.release_name or self.metadata.name

    def has_finalizer(self, finalizer: str = FINALIZER_NAME) -> bool:
        return finalizer in self.metadata.finalizers

    def add_finalizer(self, finalizer: str = FINALIZER_NAME) -> bool:
        """Add the finalizer; return False if it was already present."""
        if finalizer in self.metadata.finalizers:
            return False
        self.metadata.finalizers.append(finalizer)
        return True

    def remove_finalizer(self, finalizer: str = FINALIZER_NAME) -> bool:
        """Remove the finalizer; return False if it was not present."""
        if finalizer not in self.metadata.finalizers:
            return False
        self.metadata.finalizers = [
            item for item in self.metadata.finalizers if item != finalizer
        ]
        return True
