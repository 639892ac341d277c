"""
Route table for the REST API.

Each route names its method, path, the Lambda source under lambdas/, the
environment variables it receives and the IAM grants it needs. Grants point
at resource *targets* rather than ARNs so a route can only be granted access
to something its environment actually references.
"""

from dataclasses import dataclass, field

from stacks.config import ApiConfig
from stacks.references import ResolvedReferences

# ── IAM actions ───────────────────────────────────────────────────────────────
SECRETS_GET_SECRET_VALUE = "secretsmanager:GetSecretValue"
DYNAMODB_PUT_ITEM = "dynamodb:PutItem"
DYNAMODB_QUERY = "dynamodb:Query"
DYNAMODB_DELETE_ITEM = "dynamodb:DeleteItem"
SQS_SEND_MESSAGE = "sqs:SendMessage"

# ── Grant targets ─────────────────────────────────────────────────────────────
SECRET = "secret"
TABLE = "table"
TABLE_INDEXES = "table-indexes"
QUEUE = "queue"

# Which environment variable carries a reference to each target
TARGET_ENV_KEYS = {
    SECRET: "CONFIG_SECRET_ARN",
    TABLE: "TABLE_NAME",
    TABLE_INDEXES: "TABLE_NAME",
    QUEUE: "EMAIL_QUEUE_URL",
}


@dataclass(frozen=True)
class Grant:
    actions: tuple[str, ...]
    targets: tuple[str, ...]


@dataclass(frozen=True)
class RouteSpec:
    name: str
    method: str
    path: str  # relative to the API root, "" is the root itself
    env_keys: tuple[str, ...]
    grants: tuple[Grant, ...] = ()
    layers: tuple[str, ...] = ()  # directories under layers/

    def __post_init__(self):
        for grant in self.grants:
            for target in grant.targets:
                if target not in TARGET_ENV_KEYS:
                    raise ValueError(f"{self.name}: unknown grant target {target!r}")
                if TARGET_ENV_KEYS[target] not in self.env_keys:
                    raise ValueError(
                        f"{self.name}: grant on {target!r} requires {TARGET_ENV_KEYS[target]} in its environment"
                    )

    @property
    def entry(self) -> str:
        return f"lambdas/{self.name}"


ROUTE_SPECS = (
    RouteSpec(
        name="ping",
        method="GET",
        path="",
        env_keys=("STAGE",),
    ),
    RouteSpec(
        name="subscribe",
        method="PUT",
        path="subscribe",
        env_keys=("ADMIN_TO", "ADMIN_FROM", "CONFIG_SECRET_ARN", "EMAIL_QUEUE_URL", "STAGE", "TABLE_NAME"),
        grants=(
            Grant((SECRETS_GET_SECRET_VALUE,), (SECRET,)),
            Grant((DYNAMODB_PUT_ITEM, DYNAMODB_QUERY), (TABLE, TABLE_INDEXES)),
            Grant((SQS_SEND_MESSAGE,), (QUEUE,)),
        ),
        layers=("requests",),
    ),
    RouteSpec(
        name="unsubscribe",
        method="GET",
        path="unsubscribe",
        env_keys=("STAGE", "TABLE_NAME"),
        grants=(
            Grant((DYNAMODB_DELETE_ITEM,), (TABLE,)),
        ),
    ),
)


@dataclass(frozen=True)
class PolicyGrant:
    """An IAM statement in plain data: allow `actions` on `resources`."""

    actions: list[str]
    resources: list[str]


@dataclass(frozen=True)
class RouteDefinition:
    name: str
    method: str
    path: str
    entry: str
    environment: dict[str, str]
    grants: list[PolicyGrant] = field(default_factory=list)
    layers: list[str] = field(default_factory=list)


def target_resources(target: str, refs: ResolvedReferences) -> list[str]:
    if target == SECRET:
        return [refs.secret_arn]
    if target == TABLE:
        return [refs.table_arn]
    if target == TABLE_INDEXES:
        return [f"{refs.table_arn}/index/*"]
    if target == QUEUE:
        return [refs.queue_arn]
    raise ValueError(f"Unknown grant target {target!r}")


def environment_values(config: ApiConfig, refs: ResolvedReferences) -> dict[str, str]:
    """Every environment variable a route may ask for."""
    return {
        "ADMIN_TO": config.admin_to,
        "ADMIN_FROM": config.admin_from,
        "CONFIG_SECRET_ARN": refs.secret_arn,
        "EMAIL_QUEUE_URL": refs.queue_url,
        "STAGE": config.stage.value,
        "TABLE_NAME": refs.table_name,
    }


def compose_route(spec: RouteSpec, values: dict[str, str], refs: ResolvedReferences) -> RouteDefinition:
    grants = []
    for grant in spec.grants:
        resources = []
        for target in grant.targets:
            resources.extend(target_resources(target, refs))
        grants.append(PolicyGrant(actions=list(grant.actions), resources=resources))

    return RouteDefinition(
        name=spec.name,
        method=spec.method,
        path=spec.path,
        entry=spec.entry,
        environment={key: values[key] for key in spec.env_keys},
        grants=grants,
        layers=list(spec.layers),
    )


def compose_routes(config: ApiConfig, refs: ResolvedReferences, specs=ROUTE_SPECS) -> list[RouteDefinition]:
    values = environment_values(config, refs)
    return [compose_route(spec, values, refs) for spec in specs]
