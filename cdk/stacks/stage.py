"""Deployment stages and the naming / CORS rules derived from them."""

from enum import Enum

from aws_cdk import aws_apigateway as apigw

APEX_DOMAIN = "millhouse.dev"
PROD_ORIGIN = f"https://{APEX_DOMAIN}"


class Stage(str, Enum):
    DEV = "dev"
    TEST = "test"
    PROD = "prod"

    @classmethod
    def parse(cls, value: str) -> "Stage":
        """Return the Stage for a context value such as "dev"."""
        try:
            return cls(value)
        except ValueError:
            allowed = ", ".join(s.value for s in cls)
            raise ValueError(f"Unsupported stage {value!r} (expected one of: {allowed})") from None


def full_domain_name(stage: Stage, apex: str = APEX_DOMAIN) -> str:
    """api.<apex> in production, <stage>.api.<apex> everywhere else."""
    if stage is Stage.PROD:
        return f"api.{apex}"
    return f"{stage.value}.api.{apex}"


def cors_origins(stage: Stage) -> list[str]:
    # Production only accepts the website itself
    if stage is Stage.PROD:
        return [PROD_ORIGIN]
    return apigw.Cors.ALL_ORIGINS
